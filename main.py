#!/usr/bin/env python3
"""
VIBH Study Assistant MCP Server
Teacher-style notes from Gemini, read-aloud speech, visual aids, and a red-pen
tool that turns circled lines of the notes into follow-up questions.
"""

import asyncio
import logging

from dotenv import load_dotenv

from notes_annotator.backends.gemini_backend import GeminiTeacher, resolve_api_key
from notes_annotator.core import paths as _paths
from notes_annotator.core.conversation import ConversationController
from notes_annotator.core.paths import parse_arguments, setup_search_directories
from notes_annotator.tools.mcp_tools import configure, mcp

# --- Basic Configuration ---
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("NotesAnnotator")


async def main():
    """
    Sets up and runs the MCP server over stdio.
    """
    load_dotenv()
    args = parse_arguments()

    logging.getLogger().setLevel(getattr(logging, args.log_level))

    setup_search_directories(args)
    configure(ConversationController(GeminiTeacher(), min_overlap=args.min_overlap))

    logger.info("Starting VIBH Study Assistant MCP Server...")
    logger.info(f"Accessible directories: {_paths.SEARCH_DIRECTORIES}")
    logger.info(f"Output directory: {_paths.OUTPUT_DIRECTORY}")
    logger.info(f"Maximum attachment size: {_paths.MAX_FILE_SIZE // (1024 * 1024)} MB")
    if not resolve_api_key():
        logger.warning("No GEMINI_API_KEY/API_KEY set; study requests will fail until one is provided.")

    await mcp.run_stdio_async()

if __name__ == "__main__":
    asyncio.run(main())
