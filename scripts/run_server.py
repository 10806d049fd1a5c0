from __future__ import annotations

import argparse
from typing import Any

import uvicorn

from nom035.infrastructure.config import Settings, get_settings

APP_PATH = "nom035.web.main:app"


def build_server_options(settings: Settings, args: argparse.Namespace | None = None) -> dict[str, Any]:
    """uvicorn keyword arguments from WEB_* settings, with command-line overrides."""
    options: dict[str, Any] = {
        "host": settings.web.host,
        "port": settings.web.port,
        "reload": settings.web.reload or settings.is_development(),
        "log_level": settings.logging.level.lower(),
    }
    if args is not None:
        if args.host:
            options["host"] = args.host
        if args.port:
            options["port"] = args.port
        if args.reload:
            options["reload"] = True
    return options


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the NOM-035 assessment API")
    parser.add_argument("--host", help="Bind address (default: WEB_HOST)")
    parser.add_argument("--port", type=int, help="Bind port (default: WEB_PORT)")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    options = build_server_options(get_settings(), args)
    print(f"[run-server] Serving {APP_PATH} on {options['host']}:{options['port']}")
    uvicorn.run(APP_PATH, **options)


if __name__ == "__main__":
    main()
