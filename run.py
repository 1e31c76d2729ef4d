#!/usr/bin/env python3
"""
Personal Finance API Entry Point

Builds configuration, logging, storage and the finance system, then serves
the FastAPI application with uvicorn.
"""

import sys

import uvicorn

from finance_core.config import get_config
from finance_core.logging_config import setup_logging
from finance_core.storage import create_storage
from finance_core.system import FinanceSystem
from finance_core.api import create_app


def main() -> None:
    config = get_config()
    logger = setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)

    storage = create_storage(config.database_url)
    system = FinanceSystem(storage=storage, config=config)
    app = create_app(system=system)

    logger.info(f"Starting Personal Finance API on {config.api_host}:{config.api_port}")
    try:
        uvicorn.run(app, host=config.api_host, port=config.api_port, log_level=config.log_level.lower())
    except Exception as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)
    finally:
        system.shutdown()


if __name__ == "__main__":
    main()
