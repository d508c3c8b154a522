"""
FMG map file parser.

Two export formats are understood:

1. The full JSON export (``Export > JSON``): a single object with ``info``,
   ``settings``, ``pack`` and ``notes`` sections. Sections are read directly.
2. The legacy ``.map`` save file: newline-delimited, first line a
   pipe-delimited header, second line the pipe-delimited settings. A handful
   of lines are JSON arrays holding entity collections; the rest (SVG markup,
   comma-joined typed arrays, name bases) is not JSON and is skipped. Field
   order changed between FMG versions, so collections are recognised by the
   shape of their elements rather than by line number.

Both produce a ``MapDataset`` holding one positional collection per entity
kind plus the flattened per-cell arrays.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

import numpy as np
import structlog

from ..config import settings as app_settings
from ..utils.numeric import to_float, to_int
from .models import (
    RECORD_TYPES,
    EntityKind,
    GridCells,
    MapContext,
    MapDataset,
    MapSettings,
)

logger = structlog.get_logger()

NOTES = "notes"

# Legacy header (line 0): version|license|date|seed|width|height|mapId
HEADER_SEED = 3
HEADER_WIDTH = 4
HEADER_HEIGHT = 5

# Legacy settings (line 1)
SETTINGS_POPULATION_RATE = 12
SETTINGS_URBANIZATION = 13
SETTINGS_MAP_NAME = 20
SETTINGS_URBAN_DENSITY = 24

LINE_SPLIT = re.compile(r"[\r\n]+")

PACK_SECTIONS = {
    EntityKind.SETTLEMENT: "burgs",
    EntityKind.COUNTRY: "states",
    EntityKind.PROVINCE: "provinces",
    EntityKind.CULTURE: "cultures",
    EntityKind.RELIGION: "religions",
    EntityKind.RIVER: "rivers",
    EntityKind.MARKER: "markers",
}

# Cell attribute -> (GridCells field, FMG key)
CELL_ATTRIBUTES = {
    "river": "r",
    "haven": "haven",
    "biome": "biome",
    "road": "road",
    "province": "province",
}


class MapFormatError(ValueError):
    """The input is not a usable FMG export."""


def _element(collection: List[Any], position: int) -> Optional[Dict[str, Any]]:
    if len(collection) > position and isinstance(collection[position], dict):
        return collection[position]
    return None


def _second_has(*keys: str, without: Optional[str] = None) -> Callable[[List[Any]], bool]:
    def predicate(collection: List[Any]) -> bool:
        item = _element(collection, 1)
        if item is None or (without is not None and without in item):
            return False
        return all(key in item for key in keys)

    return predicate


def _first_has(*keys: str) -> Callable[[List[Any]], bool]:
    def predicate(collection: List[Any]) -> bool:
        item = _element(collection, 0)
        return item is not None and all(key in item for key in keys)

    return predicate


def _first_named(name: str) -> Callable[[List[Any]], bool]:
    def predicate(collection: List[Any]) -> bool:
        item = _element(collection, 0)
        return item is not None and item.get("name") == name

    return predicate


@dataclass(frozen=True)
class ShapeRule:
    """Structural fingerprint routing a legacy JSON line to a collection."""

    collection: Union[EntityKind, str]
    matches: Callable[[List[Any]], bool]


# Evaluated in order; the first matching rule wins.
SHAPE_RULES: List[ShapeRule] = [
    ShapeRule(EntityKind.PROVINCE, _second_has("state", without="cell")),
    ShapeRule(EntityKind.SETTLEMENT, _second_has("population", "citadel")),
    ShapeRule(EntityKind.COUNTRY, _first_has("diplomacy")),
    ShapeRule(EntityKind.RELIGION, _first_named("No religion")),
    ShapeRule(EntityKind.CULTURE, _first_named("Wildlands")),
    ShapeRule(EntityKind.RIVER, _first_has("mouth")),
    ShapeRule(EntityKind.MARKER, _first_has("icon", "type", "cell")),
    ShapeRule(NOTES, _first_has("id", "legend")),
]


def classify_collection(
    value: Any, rules: List[ShapeRule] = SHAPE_RULES
) -> Optional[Union[EntityKind, str]]:
    """
    Decide which collection a decoded legacy line holds.

    Args:
        value: Decoded JSON value of one line
        rules: Ordered shape rules

    Returns:
        Collection key, or None when the value is not a known collection
    """
    if not isinstance(value, list):
        return None
    for rule in rules:
        if rule.matches(value):
            return rule.collection
    return None


def _decode(raw: Union[str, bytes]) -> str:
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise MapFormatError(f"Map file is not valid UTF-8: {e}") from e
    text = raw.lstrip("\ufeff")
    if not text.strip():
        raise MapFormatError("Map file is empty")
    return text


def _settings_value(fields: List[str], position: int, default: float) -> float:
    if len(fields) <= position:
        return default
    value = to_float(fields[position], default)
    return value if value > 0 else default


def _default_settings() -> MapSettings:
    return MapSettings(
        population_rate=app_settings.default_population_rate,
        urban_density=app_settings.default_urban_density,
        urbanization=app_settings.default_urbanization,
    )


def parse_legacy(text: str) -> MapDataset:
    """Parse a newline-delimited ``.map`` save file."""
    lines = LINE_SPLIT.split(text.strip())

    header = lines[0].split("|")
    has_header = len(header) > HEADER_SEED
    if not has_header:
        logger.warning("Legacy map has no header line", first_line=lines[0][:80])
        header = []

    defaults = _default_settings()
    settings_fields = (
        lines[1].split("|")
        if has_header and len(lines) > 1 and not lines[1].lstrip().startswith(("[", "{"))
        else []
    )
    map_settings = MapSettings(
        population_rate=_settings_value(
            settings_fields, SETTINGS_POPULATION_RATE, defaults.population_rate
        ),
        urbanization=_settings_value(
            settings_fields, SETTINGS_URBANIZATION, defaults.urbanization
        ),
        urban_density=_settings_value(
            settings_fields, SETTINGS_URBAN_DENSITY, defaults.urban_density
        ),
    )
    map_name = (
        settings_fields[SETTINGS_MAP_NAME]
        if len(settings_fields) > SETTINGS_MAP_NAME
        else ""
    )

    collections: Dict[Union[EntityKind, str], List[Any]] = {}
    skipped = 0
    for line in lines:
        try:
            value = json.loads(line)
        except ValueError:
            # Most of the file is not JSON
            skipped += 1
            continue

        kind = classify_collection(value)
        if kind is None:
            skipped += 1
            continue
        if kind in collections:
            logger.debug("Collection found twice, keeping the later one", collection=str(kind))
        collections[kind] = value

    logger.debug(
        "Legacy lines classified",
        collections=sorted(str(getattr(k, "value", k)) for k in collections),
        skipped=skipped,
    )

    if not has_header and not collections:
        raise MapFormatError(
            "Unrecognised map file: no pipe-delimited header and no entity collections"
        )

    context = MapContext(
        seed=header[HEADER_SEED] if has_header else "",
        map_name=map_name,
        width=to_float(header[HEADER_WIDTH]) if len(header) > HEADER_WIDTH else 0.0,
        height=to_float(header[HEADER_HEIGHT]) if len(header) > HEADER_HEIGHT else 0.0,
        source_format="legacy",
        settings=map_settings,
        city_generator_url=app_settings.city_generator_url,
    )
    # Legacy saves store cell data as comma-joined typed arrays, not records
    return build_dataset(context, collections, GridCells.empty())


def _cell_value(values: Any, index: int) -> Any:
    if isinstance(values, list) and index < len(values):
        return values[index]
    return None


def flatten_cells(cells: Any) -> GridCells:
    """
    Flatten ``pack.cells`` into parallel arrays indexed by cell id.

    Accepts the list-of-records layout of the JSON export as well as a
    columnar object (``{"p": [...], "r": [...]}``).
    """
    if isinstance(cells, dict):
        size = max(
            (len(v) for v in cells.values() if isinstance(v, list)), default=0
        )
        grid = GridCells.empty(size)
        for index in range(size):
            _fill_cell(
                grid,
                index,
                {key: _cell_value(values, index) for key, values in cells.items()},
            )
        return grid

    if not isinstance(cells, list):
        return GridCells.empty()

    positions = []
    for position, cell in enumerate(cells):
        if not isinstance(cell, dict):
            continue
        index = to_int(cell.get("i"), position)
        # Ids past the end of the list cannot be real cells
        if index is None or index < 0 or index >= len(cells):
            continue
        positions.append((index, cell))

    size = max((index + 1 for index, _ in positions), default=0)
    grid = GridCells.empty(size)
    for index, cell in positions:
        _fill_cell(grid, index, cell)
    return grid


def _fill_cell(grid: GridCells, index: int, cell: Dict[str, Any]) -> None:
    for attribute, key in CELL_ATTRIBUTES.items():
        value = to_float(cell.get(key), 0.0)
        getattr(grid, attribute)[index] = value

    point = cell.get("p")
    if isinstance(point, list) and len(point) >= 2:
        grid.points[index] = (
            to_float(point[0], np.nan),
            to_float(point[1], np.nan),
        )


def _section(document: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = document.get(name)
    if not isinstance(section, dict):
        raise MapFormatError(f"Map JSON is missing the '{name}' section")
    return section


def parse_json(text: str) -> MapDataset:
    """Parse a full JSON export."""
    try:
        document = json.loads(text)
    except ValueError as e:
        raise MapFormatError(f"Map JSON could not be decoded: {e}") from e

    if not isinstance(document, dict):
        raise MapFormatError("Map JSON must be an object")

    info = _section(document, "info")
    pack = _section(document, "pack")
    file_settings = document.get("settings")
    if not isinstance(file_settings, dict):
        file_settings = {}

    defaults = _default_settings()
    map_settings = MapSettings(
        population_rate=to_float(file_settings.get("populationRate"), 0)
        or defaults.population_rate,
        urban_density=to_float(file_settings.get("urbanDensity"), 0)
        or defaults.urban_density,
        urbanization=to_float(file_settings.get("urbanization"), 0)
        or defaults.urbanization,
    )

    seed = info.get("seed", "")
    context = MapContext(
        seed=str(seed) if seed is not None else "",
        map_name=str(info.get("mapName") or file_settings.get("mapName") or ""),
        width=to_float(info.get("width")),
        height=to_float(info.get("height")),
        source_format="json",
        settings=map_settings,
        city_generator_url=app_settings.city_generator_url,
    )

    collections: Dict[Union[EntityKind, str], List[Any]] = {}
    for kind, key in PACK_SECTIONS.items():
        section = pack.get(key, [])
        if section is None:
            section = []
        if not isinstance(section, list):
            raise MapFormatError(f"Map JSON section 'pack.{key}' must be a list")
        collections[kind] = section

    notes = document.get("notes")
    collections[NOTES] = notes if isinstance(notes, list) else []

    return build_dataset(context, collections, flatten_cells(pack.get("cells")))


def _attach_notes(markers: List[Any], notes: List[Dict[str, Any]]) -> List[Any]:
    by_id = {note["id"]: note for note in notes if isinstance(note.get("id"), str)}
    attached = []
    for marker in markers:
        if isinstance(marker, dict):
            note = by_id.get(f"marker{marker.get('i')}", {})
            marker = dict(marker)
            marker.setdefault("name", note.get("name") or marker.get("type") or "")
            marker.setdefault("legend", note.get("legend", ""))
        attached.append(marker)
    return attached


def build_dataset(
    context: MapContext,
    collections: Dict[Union[EntityKind, str], List[Any]],
    grid: GridCells,
) -> MapDataset:
    """Turn raw collections into positional record lists."""
    notes = [note for note in collections.get(NOTES, []) if isinstance(note, dict)]
    raw = dict(collections)
    raw[EntityKind.MARKER] = _attach_notes(raw.get(EntityKind.MARKER, []), notes)

    records = {
        kind: [
            record_type.from_record(index, item)
            for index, item in enumerate(raw.get(kind, []))
        ]
        for kind, record_type in RECORD_TYPES.items()
    }

    dataset = MapDataset(
        context=context,
        cultures=records[EntityKind.CULTURE],
        religions=records[EntityKind.RELIGION],
        countries=records[EntityKind.COUNTRY],
        provinces=records[EntityKind.PROVINCE],
        settlements=records[EntityKind.SETTLEMENT],
        markers=records[EntityKind.MARKER],
        rivers=records[EntityKind.RIVER],
        grid=grid,
        notes=notes,
    )

    logger.info(
        "Map parsed",
        format=context.source_format,
        seed=context.seed,
        **{kind.value: len(items) for kind, items in records.items()},
        cells=grid.size,
    )
    return dataset


def parse_map_data(raw: Union[str, bytes]) -> MapDataset:
    """
    Parse an FMG export of either format.

    Args:
        raw: File contents

    Returns:
        MapDataset with every collection found in the file

    Raises:
        MapFormatError: The input is empty, undecodable or lacks required sections
    """
    text = _decode(raw)
    if text.lstrip().startswith("{"):
        return parse_json(text)
    return parse_legacy(text)
