"""CLI entry point for fsleash: serves the filesystem tools over MCP stdio."""

import asyncio
import sys

import structlog

from fsleash.app import build_server
from fsleash.core.config import load_config
from fsleash.exceptions import ConfigError

logger = structlog.get_logger()


async def main() -> None:
    try:
        config = load_config()
    except ConfigError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        print("Check FSLEASH_* variables or the .env file.", file=sys.stderr)
        sys.exit(1)

    server = build_server(config)
    logger.info("stdio_starting", base_directory=config.base_directory)
    try:
        await server.run_stdio()
    finally:
        logger.info("stdio_stopped")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
