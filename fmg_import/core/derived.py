"""
Presentation fields derived from raw map data.

City links reproduce FMG's link to Watabou's Medieval Fantasy City
Generator: every parameter is a deterministic function of the settlement,
its grid cell and the map settings, so the same map always opens the same
city.

Legend sanitization removes embedded frames from marker legends before they
are rendered elsewhere.
"""

import math
import re
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import structlog

from ..utils.numeric import js_number, minmax, normalize, rn
from .models import GridCells, MapContext, MapSettings, Settlement

logger = structlog.get_logger()

MIN_CITY_SIZE = 6
MAX_CITY_SIZE = 100

# Road strength above which a settlement is drawn as a crossroads hub
HUB_ROAD_THRESHOLD = 50

# Biomes 1-4 (deserts, savanna, grassland) can only be farmed along a river
ARABLE_BIOMES_WITH_RIVER = frozenset(range(1, 9))
ARABLE_BIOMES = frozenset(range(5, 9))

CHARACTER_ENCOUNTER = "You have encountered a character."

IFRAME_PAIRED = re.compile(
    r"<iframe\b([^>]*)>.*?</iframe\s*>", re.IGNORECASE | re.DOTALL
)
IFRAME_SINGLE = re.compile(r"<iframe\b([^>]*)>", re.IGNORECASE)
IFRAME_CLOSE = re.compile(r"</iframe\s*>", re.IGNORECASE)
IFRAME_SRC = re.compile(
    r"""\bsrc\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+))""", re.IGNORECASE
)


def city_size(population: float, settings: MapSettings) -> int:
    """
    Footprint passed to the city generator, clamped to [6, 100].

    Args:
        population: Settlement population in FMG points
        settings: Map population settings
    """
    urban = max(population * settings.population_rate, 0.0)
    if settings.urban_density > 0:
        raw = 2.13 * (urban / settings.urban_density) ** 0.385
    else:
        # FMG divides by zero here and the size saturates
        raw = math.inf
    if not math.isfinite(raw):
        return MAX_CITY_SIZE
    return int(minmax(math.ceil(raw), MIN_CITY_SIZE, MAX_CITY_SIZE))


def city_population(population: float, settings: MapSettings) -> int:
    """Displayed population: points scaled by rate and urbanization."""
    return int(rn(population * settings.population_rate * settings.urbanization))


def city_seed(settlement: Settlement, context: MapContext) -> str:
    """Settlement's own seed, or the map seed followed by its id padded to 4 digits."""
    if settlement.mfcg_seed:
        return settlement.mfcg_seed
    return f"{context.seed}{str(settlement.id).zfill(4)}"


def sea_direction(grid: GridCells, cell: Optional[int]) -> Optional[float]:
    """
    Direction from a cell towards its haven.

    Returns a value in [0, 2): 0 = south, 0.5 = west, 1 = north, 1.5 = east.
    None when the cell has no haven or either point is unknown.
    """
    haven = grid.haven_of(cell)
    if haven is None:
        return None
    p1, p2 = grid.point(cell), grid.point(haven)
    if p1 is None or p2 is None:
        return None

    deg = math.atan2(p2[1] - p1[1], p2[0] - p1[0]) * 180 / math.pi - 90
    if deg < 0:
        deg += 360
    value = rn(normalize(deg, 0, 360) * 2, 2)
    # Just east of due south rounds up to a full turn
    return 0.0 if value >= 2 else value


def has_farms(grid: GridCells, cell: Optional[int], river: bool) -> bool:
    arable = ARABLE_BIOMES_WITH_RIVER if river else ARABLE_BIOMES
    return grid.biome_of(cell) in arable


def city_link_params(
    settlement: Settlement, context: MapContext, grid: GridCells
) -> Dict[str, Any]:
    """
    Query parameters for the city generator, in the order FMG emits them.

    ``sea`` is only present for coastal settlements with a known haven.
    """
    cell = settlement.cell
    river = grid.has_river(cell)
    coast = settlement.coast
    sea = sea_direction(grid, cell) if coast else None

    params: Dict[str, Any] = {
        "name": settlement.name,
        "population": city_population(settlement.population, context.settings),
        "size": city_size(settlement.population, context.settings),
        "seed": city_seed(settlement, context),
        "river": int(river),
        "coast": int(coast),
        "farms": int(has_farms(grid, cell, river)),
        "citadel": int(settlement.citadel),
        # Alternates castle placement between neighbouring ids
        "urban_castle": int(settlement.citadel and settlement.id % 2 == 0),
        "hub": int(grid.road_of(cell) > HUB_ROAD_THRESHOLD),
        "plaza": int(settlement.plaza),
        "temple": int(settlement.temple),
        "walls": int(settlement.walls),
        "shantytown": int(settlement.shanty),
        "gates": -1,
    }
    if sea is not None:
        params["sea"] = sea
    return params


def city_link(settlement: Settlement, context: MapContext, grid: GridCells) -> str:
    """Link to the generated city; a manual link on the settlement wins."""
    if settlement.link:
        return settlement.link

    params = city_link_params(settlement, context, grid)
    query = urlencode(
        {k: js_number(v) if isinstance(v, float) else v for k, v in params.items()}
    )
    base = context.city_generator_url
    separator = "&" if "?" in base else "?"
    return f"{base}{separator}{query}"


def _iframe_src(attributes: str) -> Optional[str]:
    match = IFRAME_SRC.search(attributes)
    if match is None:
        return None
    return next((group for group in match.groups() if group is not None), None)


def sanitize_legend(legend: Optional[str]) -> str:
    """
    Remove embedded frames from a marker legend.

    Character encounter legends only point at their content through the
    frame, so there the frame is replaced with a plain link to its source.
    """
    if not legend:
        return ""

    keep_link = CHARACTER_ENCOUNTER in legend

    def replace(match: "re.Match[str]") -> str:
        if not keep_link:
            return ""
        src = _iframe_src(match.group(1))
        return f'<a href="{src}" target="_blank">{src}</a>' if src else ""

    text = IFRAME_PAIRED.sub(replace, legend)
    text = IFRAME_SINGLE.sub(replace, text)
    return IFRAME_CLOSE.sub("", text)
