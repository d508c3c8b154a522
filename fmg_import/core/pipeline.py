"""Import pipeline: parse, resolve, derive, assemble."""

from typing import Union

from .assembler import EntityGraph, GraphAssembler
from .parser import parse_map_data
from .resolver import ReferenceResolver


def parse(raw: Union[str, bytes]) -> EntityGraph:
    """
    Turn an FMG export into a cross-referenced entity graph.

    Args:
        raw: Contents of a ``.map`` save file or a full JSON export

    Returns:
        EntityGraph with sentinel and removed entities filtered out

    Raises:
        MapFormatError: The input is not a usable FMG export
    """
    dataset = parse_map_data(raw)
    resolver = ReferenceResolver(dataset)
    return GraphAssembler(dataset, resolver).assemble()
