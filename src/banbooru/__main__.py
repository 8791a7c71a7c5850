"""CLI entry point for Banbooru.

Runs the file server and mints the client-side tokens it accepts.

Examples:
    ```bash
    python -m banbooru serve --config config/banbooru.yaml
    python -m banbooru auth-token --method PUT --url https://files.example/file/<hash> --file cat.png
    python -m banbooru delegate --delegatee <server pubkey> --conditions "kind=1063"
    ```

Both ``auth-token`` and ``delegate`` sign with the key in ``PRIVATE_KEY``
(override with ``--keys-env``).
"""

import argparse
import asyncio
import hashlib
import json
import logging
import signal
import sys
import time
from pathlib import Path
from typing import Any

from nostr_sdk import NostrSdkError
from pydantic import ValidationError as PydanticValidationError

from banbooru.core import start_metrics_server
from banbooru.core.exceptions import ConfigurationError
from banbooru.core.logger import Logger, StructuredFormatter
from banbooru.core.yaml import load_yaml
from banbooru.models.constants import HEX_KEY_PATTERN, EventKind
from banbooru.nips.nip26 import sign_delegation
from banbooru.nips.nip98 import build_auth_header
from banbooru.services.server import FileServer
from banbooru.utils.keys import ENV_PRIVATE_KEY, load_keys_from_env


DEFAULT_CONFIG = Path("config") / "banbooru.yaml"
DEFAULT_DELEGATION_DAYS = 30

logger = Logger("cli")


async def run_service(service: FileServer) -> int:
    """Run the file server until a shutdown signal is received.

    Starts the Prometheus metrics server (when enabled), installs
    SIGINT/SIGTERM handlers and drives ``run_forever()``.

    Returns:
        Exit code: 0 for success, 1 for failure.
    """
    metrics_config = service.config.metrics
    metrics_server = await start_metrics_server(metrics_config)

    if metrics_config.enabled:
        logger.info(
            "metrics_server_started",
            host=metrics_config.host,
            port=metrics_config.port,
            path=metrics_config.path,
        )

    # Signal handling for graceful shutdown
    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        service.request_shutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        async with service:
            await service.run_forever()
        return 0
    except Exception as e:  # Intentionally broad: CLI error boundary for continuous mode
        logger.error("file_server_failed", error=str(e))
        return 1
    finally:
        await metrics_server.stop()
        if metrics_config.enabled:
            logger.info("metrics_server_stopped")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with ``serve``, ``auth-token`` and ``delegate``."""
    parser = argparse.ArgumentParser(
        prog="banbooru",
        description="Banbooru content-addressed file server",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the file server")
    serve.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Config path (default: {DEFAULT_CONFIG})",
    )

    token = commands.add_parser("auth-token", help="Print a NIP-98 Authorization header value")
    token.add_argument("--method", required=True, help="HTTP method to bind (e.g. PUT)")
    token.add_argument("--url", required=True, help="Full request URL to bind")
    token.add_argument("--file", type=Path, help="Request body to bind through a payload tag")
    token.add_argument("--keys-env", default=ENV_PRIVATE_KEY, help="Private key env variable")

    delegate = commands.add_parser(
        "delegate", help="Print an X-Nip-26-Delegation header value for a delegatee"
    )
    delegate.add_argument("--delegatee", required=True, help="Hex public key of the file server")
    delegate.add_argument(
        "--conditions",
        help=(
            f"Condition string (default: kind={int(EventKind.FILE_METADATA)} "
            f"valid for {DEFAULT_DELEGATION_DAYS} days)"
        ),
    )
    delegate.add_argument("--keys-env", default=ENV_PRIVATE_KEY, help="Private key env variable")

    return parser


def setup_logging(level: str) -> None:
    """Configure the root logger with structured formatting.

    Installs a ``StructuredFormatter`` on the root handler so that all
    log output -- from both ``Logger`` (with ``structured_kv`` extra) and
    plain ``logging.getLogger()`` calls in the nips layer -- is unified as
    ``level name message key=value ...``.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Load a YAML file as a dict, returning ``{}`` if the file does not exist."""
    if not path.exists():
        logger.warning("config_not_found", path=str(path))
        return {}
    return load_yaml(str(path))


def default_conditions(now: int | None = None) -> str:
    """Return ``kind=1063&created_at<now+30d``."""
    now = int(time.time()) if now is None else now
    expires = now + DEFAULT_DELEGATION_DAYS * 86400
    return f"kind={int(EventKind.FILE_METADATA)}&created_at<{expires}"


def cmd_auth_token(args: argparse.Namespace) -> int:
    keys = load_keys_from_env(args.keys_env)
    body = args.file.read_bytes() if args.file is not None else None
    header = build_auth_header(keys, method=args.method, url=args.url, body=body)
    print(header)  # noqa: T201
    if body is not None:
        logger.debug("auth_token_payload", sha256=hashlib.sha256(body).hexdigest())
    return 0


def cmd_delegate(args: argparse.Namespace) -> int:
    if not HEX_KEY_PATTERN.fullmatch(args.delegatee):
        logger.error("invalid_delegatee", delegatee=args.delegatee)
        return 2
    keys = load_keys_from_env(args.keys_env)
    conditions = args.conditions if args.conditions is not None else default_conditions()
    tag = sign_delegation(keys.secret_key().to_hex(), args.delegatee.lower(), conditions)
    print(json.dumps({"from": tag.delegator, "cond": tag.conditions, "sig": tag.sig}))  # noqa: T201
    return 0


async def cmd_serve(args: argparse.Namespace) -> int:
    try:
        config_dict = _load_yaml_dict(args.config)
        service = FileServer.from_dict(config_dict)
    except (ConfigurationError, PydanticValidationError, ValueError, NostrSdkError) as e:
        logger.error("config_invalid", path=str(args.config), error=str(e))
        return 1
    return await run_service(service)


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args and dispatch the subcommand."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        if args.command == "serve":
            return await cmd_serve(args)
        if args.command == "auth-token":
            return cmd_auth_token(args)
        return cmd_delegate(args)
    except (ValueError, OSError, NostrSdkError) as e:
        logger.error(f"{args.command.replace('-', '_')}_failed", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
