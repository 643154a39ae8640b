#!/usr/bin/env python3
"""
Script to run the Book Catalog API server.
"""

import uvicorn

from api.config import config as api_config
from utilities.config import config
from utilities.logger import get_logger, setup_logging


def main():
    """Run the API server."""
    setup_logging(log_level=config.log_level, log_format=config.log_format)
    logger = get_logger(__name__)
    logger.info(
        "Starting Book Catalog API server",
        host=api_config.host,
        port=api_config.port,
        debug=api_config.debug,
        graphql_path=api_config.graphql_path,
    )

    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level=api_config.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()
