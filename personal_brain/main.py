"""
Main entry point for the Personal Brain MCP Server.

This module provides the main() function and server initialization.
"""

import asyncio

from mcp.server.stdio import stdio_server

from .brain import build_brain
from .config import settings
from .importers import load_startup_data
from .logging import configure_logging, get_logger
from .tools import create_server


def main():
    """Main entry point."""
    configure_logging(settings.log_level)
    logger = get_logger(__name__)

    brain = build_brain(settings)
    server = create_server(brain)

    async def run():
        await load_startup_data(brain, settings)
        logger.info("server_starting", transport="stdio")
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())

    asyncio.run(run())


if __name__ == "__main__":
    main()
