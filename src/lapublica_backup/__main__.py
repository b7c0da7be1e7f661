"""Entry point for the granular backup API server."""

import argparse
import asyncio

import uvicorn

from lapublica_backup import __version__
from lapublica_backup.api.app import create_app
from lapublica_backup.config import configure_logging, get_settings


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="lapublica-backup",
        description="La Pública - granular backup and restore API",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=8000, help="Bind port")
    return parser.parse_args()


async def main(args: argparse.Namespace) -> None:
    """Main entry point for the API server."""
    settings = get_settings()

    configure_logging(settings)

    config = uvicorn.Config(
        create_app(settings),
        host=args.host,
        port=args.port,
        log_level=settings.log_level.lower(),
    )
    await uvicorn.Server(config).serve()


def cli() -> None:
    """CLI entry point."""
    args = parse_args()
    asyncio.run(main(args))


if __name__ == "__main__":
    cli()
