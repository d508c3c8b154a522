"""Import Azgaar's Fantasy Map Generator exports into a cross-referenced entity graph."""

from .core import EntityGraph, MapFormatError, build_pins, parse

__all__ = ['EntityGraph', 'MapFormatError', 'build_pins', 'parse']
