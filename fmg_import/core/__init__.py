"""
Core map import functionality.
"""

from .models import (
    EntityKind, EntityRef, Relationship, Culture, Religion, Country, Province,
    Settlement, Marker, River, GridCells, MapContext, MapSettings, MapDataset
)
from .parser import MapFormatError, parse_map_data, classify_collection, SHAPE_RULES, ShapeRule
from .resolver import ReferenceResolver
from .derived import city_link, city_link_params, sea_direction, sanitize_legend
from .assembler import EntityGraph, GraphAssembler
from .pipeline import parse
from .pins import MapPin, PinOptions, build_pins

__all__ = ['EntityKind', 'EntityRef', 'Relationship', 'Culture', 'Religion', 'Country',
           'Province', 'Settlement', 'Marker', 'River', 'GridCells', 'MapContext',
           'MapSettings', 'MapDataset', 'MapFormatError', 'parse_map_data',
           'classify_collection', 'SHAPE_RULES', 'ShapeRule', 'ReferenceResolver',
           'city_link', 'city_link_params', 'sea_direction', 'sanitize_legend',
           'EntityGraph', 'GraphAssembler', 'parse', 'MapPin', 'PinOptions', 'build_pins']
