"""Main entry point for the Invoice Notify service.

``python main.py`` serves the API. ``python main.py sweep`` runs the
scheduled sweeps once and exits, for deployments where the periodic trigger
is a process rather than an HTTP call.
"""

import argparse
import asyncio
import os

import uvicorn
from loguru import logger

from src.core.config import get_settings
from src.core.logging import setup_logging
from src.infrastructure.database.session import close_database
from src.notifications.scheduler import run_scheduled_sweeps


def serve() -> None:
    """Run the API with uvicorn."""
    settings = get_settings()
    port = int(os.environ.get("PORT", settings.api_port))

    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": {
            "default": {
                "class": "src.core.logging.InterceptHandler",
            },
        },
        "loggers": {
            name: {"handlers": ["default"], "level": "INFO", "propagate": False}
            for name in ("uvicorn", "uvicorn.error", "uvicorn.access")
        },
    }

    logger.info(
        "Starting Uvicorn on http://{}:{} ({})",
        settings.api_host,
        port,
        "development mode with auto-reload" if settings.debug else "production mode",
    )
    uvicorn.run(
        "src.api.main:app",
        host=settings.api_host,
        port=port,
        reload=settings.debug,
        log_config=log_config,
    )


async def sweep_once() -> bool:
    """Run the scheduled sweeps without live push and close the database."""
    try:
        report = await run_scheduled_sweeps()
    finally:
        await close_database()
    for name, error in report.errors.items():
        logger.error("Sweep {} failed: {}", name, error)
    return report.success


def main() -> None:
    """Parse the command line and run the selected command."""
    parser = argparse.ArgumentParser(description="Invoice Notify service")
    parser.add_argument(
        "command",
        nargs="?",
        choices=("serve", "sweep"),
        default="serve",
        help="serve the API (default) or run the scheduled sweeps once",
    )
    args = parser.parse_args()

    setup_logging(get_settings())

    if args.command == "sweep":
        raise SystemExit(0 if asyncio.run(sweep_once()) else 1)
    serve()


if __name__ == "__main__":
    main()
