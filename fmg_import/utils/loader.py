"""
File boundary for map imports.

Reading the file is the only asynchronous step; parsing runs synchronously
once the contents are in memory.
"""

import asyncio
from pathlib import Path
from typing import Union

import structlog

from ..core.assembler import EntityGraph
from ..core.pipeline import parse

logger = structlog.get_logger()


def read_map_file(path: Union[str, Path]) -> bytes:
    """Read a map file from disk."""
    return Path(path).read_bytes()


async def import_map_file(path: Union[str, Path]) -> EntityGraph:
    """
    Read and import a map file.

    Args:
        path: Path to a ``.map`` or ``.json`` export

    Returns:
        Assembled EntityGraph
    """
    logger.info("Importing map file", path=str(path))
    raw = await asyncio.to_thread(read_map_file, path)
    return parse(raw)
