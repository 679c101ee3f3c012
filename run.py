#!/usr/bin/env python3
"""
Banking Ledger Entry Point

Starts the FastAPI server with the ledger core and background balance
monitoring. Settings come from BANKING_* environment variables or a .env file.
"""

import sys

from banking_ledger.api import run_server
from banking_ledger.config import get_config
from banking_ledger.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(config.log_level, config.log_format, config.log_file)
    logger.info(
        f"Starting Banking Ledger API on http://{config.api_host}:{config.api_port} "
        f"(docs at /docs)"
    )

    try:
        run_server(config.api_host, config.api_port)
    except KeyboardInterrupt:
        logger.info("Shutting down Banking Ledger")
    except Exception as e:
        logger.error(f"Error starting server: {e}", exc_info=True)
        sys.exit(1)
