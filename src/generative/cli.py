"""Command line access to the generative client.

Usage:
    generative generate "Why is the sky blue?" --stream
    generative list
    generative status llama2
    generative preload llama2 --config-file gpu.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import yaml

from .client import GenerativeClient
from .config import load_config
from .errors import GenerativeError
from .types import GenerateResult, ModelConfigOptions, validate_model_config


class _PrintHandler:
    """Writes streamed tokens straight to stdout."""

    def on_token(self, token: str) -> None:
        sys.stdout.write(token)
        sys.stdout.flush()

    def on_complete(self, result: GenerateResult) -> None:
        sys.stdout.write("\n")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="generative", description="Talk to a local Ollama server")
    p.add_argument("--config", default=None, help="Path to a YAML client config")
    p.add_argument("--host", default=None, help="Server URL (overrides config and OLLAMA_HOST)")
    p.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate text for a prompt")
    gen.add_argument("prompt")
    gen.add_argument("--model", default=None)
    gen.add_argument("--system", default=None)
    gen.add_argument("--temperature", type=float, default=None)
    gen.add_argument("--top-p", type=float, default=None)
    gen.add_argument("--stream", action="store_true", help="Print tokens as they arrive")

    sub.add_parser("list", help="List models known to the server")
    for name, help_text in (
        ("show", "Show the descriptor of a model"),
        ("status", "Re-check and show the status of a model"),
        ("unload", "Release a loaded model"),
    ):
        sub.add_parser(name, help=help_text).add_argument("model")

    for name, help_text in (
        ("preload", "Load a model, optionally applying a configuration"),
        ("update", "Apply a configuration to a model"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("model")
        cmd.add_argument(
            "--config-file",
            type=Path,
            default=None,
            required=name == "update",
            help="YAML file with parameters/resources/performance groups",
        )
    return p.parse_args(argv)


def _read_model_config(path: Path | None) -> ModelConfigOptions | None:
    if path is None:
        return None
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    return validate_model_config(data or {})


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def _run(client: GenerativeClient, args: argparse.Namespace) -> None:
    if args.command == "generate":
        request: dict[str, Any] = {"prompt": args.prompt, "stream": args.stream}
        for key, value in (
            ("model", args.model),
            ("system", args.system),
            ("temperature", args.temperature),
            ("top_p", args.top_p),
        ):
            if value is not None:
                request[key] = value
        if args.stream:
            await client.generate(request, _PrintHandler())
        else:
            print(await client.generate(request))
    elif args.command == "list":
        _print_json([model.model_dump(mode="json") for model in await client.list_models()])
    elif args.command == "show":
        descriptor = await client.get_model(args.model)
        _print_json(descriptor.model_dump(mode="json") if descriptor else None)
    elif args.command == "status":
        _print_json((await client.get_model_status(args.model)).model_dump(mode="json"))
    elif args.command == "preload":
        await client.preload_model(args.model, _read_model_config(args.config_file))
    elif args.command == "update":
        await client.update_model_config(args.model, _read_model_config(args.config_file))
    elif args.command == "unload":
        await client.unload_model(args.model)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        client = GenerativeClient(load_config(args.config), host=args.host)
        asyncio.run(_run(client, args))
    except GenerativeError as exc:
        print(f"error [{exc.code}]: {exc.message}", file=sys.stderr)
        if exc.cause is not None:
            print(f"  caused by: {exc.cause}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
