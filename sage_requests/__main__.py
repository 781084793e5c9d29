"""CLI entry point for the request service."""

import argparse
import sys

from sqlalchemy.engine import make_url

from .config import load_config
from .log import setup_logging


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="sage-requests",
        description="Assistance request orchestrator for the Sage support app",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for name, help_text in (("serve", "Run the HTTP service"), ("config-check", "Validate configuration")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
        sub.add_argument("-e", "--env", default=".env", help="Path to .env file")

    args = parser.parse_args()
    if args.command is None:
        args.command = "serve"
        args.config = "config.yaml"
        args.env = ".env"

    if args.command == "config-check":
        _check_config(args.config, args.env)
    else:
        _serve(args.config, args.env)


def _check_config(config_path: str, env_path: str) -> None:
    try:
        settings = load_config(config_path, env_path)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Configuration valid: {config_path}")
    print(f"  Database: {make_url(settings.database.url).render_as_string(hide_password=True)}")
    print(f"  Billing: {settings.services.billing.base_url} (timeout={settings.services.billing.timeout}s)")
    print(f"  LLM: {settings.services.llm.base_url} (timeout={settings.services.llm.timeout}s)")
    print(f"  Chat: {settings.services.chat.base_url} (timeout={settings.services.chat.timeout}s)")
    print(f"  Refund on failure: {settings.policy.refund_on_failure}")


def _serve(config_path: str, env_path: str) -> None:
    import uvicorn

    from .api import create_app
    from .app import build_service

    settings = load_config(config_path, env_path)
    setup_logging(settings.log_level)
    app = create_app(build_service(settings))
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
