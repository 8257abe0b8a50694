#!/usr/bin/env python3
"""
Production entry point for the CBS Statline MCP Server.

This module configures logging, manages the server lifecycle and runs the
server over stdio.
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from mcp.server.fastmcp import FastMCP

from . import config

logger = logging.getLogger("cbs_statline_mcp")

# =============================================================================
# Configuration and Context
# =============================================================================

@dataclass
class AppContext:
    """Application context exposed to tools through the FastMCP lifespan."""
    environment: str
    log_level: str
    odata_base_url: str
    catalog_tables_url: str
    data_properties_base_url: str
    http_timeout: Optional[float]


def configure_logging(log_level: str) -> None:
    """
    Send log records to stderr.

    stdout carries the MCP stdio transport, so nothing else may write to it.
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


@asynccontextmanager
async def app_lifespan(mcp_server: FastMCP):  # noqa: ARG001
    """
    Manage the application lifecycle.

    Sets up logging from the environment and reports the CBS endpoints in use.
    """
    environment = os.getenv("ENVIRONMENT", config.ENVIRONMENT)
    log_level = os.getenv("LOG_LEVEL", config.LOG_LEVEL)
    configure_logging(log_level)

    logger.info(f"Starting CBS Statline MCP Server (env: {environment})")
    logger.info(f"OData endpoint: {config.ODATA_BASE_URL}")
    logger.info(f"Catalog endpoint: {config.CATALOG_TABLES_URL}")
    logger.info(f"DataProperties endpoint: {config.DATA_PROPERTIES_BASE_URL}")

    try:
        yield AppContext(
            environment=environment,
            log_level=log_level,
            odata_base_url=config.ODATA_BASE_URL,
            catalog_tables_url=config.CATALOG_TABLES_URL,
            data_properties_base_url=config.DATA_PROPERTIES_BASE_URL,
            http_timeout=config.HTTP_TIMEOUT,
        )
    except Exception as e:
        logger.error(f"Error during server execution: {e}")
        raise
    finally:
        logger.info("Shutting down CBS Statline MCP Server")


# =============================================================================
# Entry Points
# =============================================================================

def main() -> None:
    """
    Main entry point for the production server.

    Called when the package is run as a script or through the
    `cbs-statline-mcp` console script.
    """
    # Importing the server module registers the tools
    from .server import mcp

    try:
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Server interrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Server failed to start: {e}")
        sys.exit(1)


def dev_main() -> None:
    """Development entry point with debug logging."""
    os.environ.setdefault("ENVIRONMENT", "development")
    os.environ.setdefault("LOG_LEVEL", "DEBUG")

    main()


if __name__ == "__main__":
    main()
