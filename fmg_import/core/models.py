"""
Entity models for imported FMG maps.

Every record keeps its position in the source collection (``index``) next to
its own id (``i``), because FMG mixes both kinds of reference: a settlement
points at its culture by id but at its country by position. Placeholder,
sentinel and removed records are kept in place so that positional references
stay valid; ``renderable`` tells them apart.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

import numpy as np
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..utils.numeric import to_float, to_int

logger = structlog.get_logger()


class EntityKind(str, Enum):
    """Entity collections carried by a map."""

    CULTURE = "culture"
    RELIGION = "religion"
    COUNTRY = "country"
    PROVINCE = "province"
    SETTLEMENT = "settlement"
    MARKER = "marker"
    RIVER = "river"


# FMG's reserved entries: kept for index alignment, never rendered
SENTINEL_NAMES: Dict[EntityKind, str] = {
    EntityKind.CULTURE: "Wildlands",
    EntityKind.COUNTRY: "Neutrals",
    EntityKind.RELIGION: "No religion",
}


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return to_float(value) != 0


def _optional_id(value: Any) -> Optional[int]:
    return to_int(value)


def _int_list(value: Any) -> List[int]:
    if not isinstance(value, list):
        return []
    ids = (to_int(item) for item in value)
    return [item for item in ids if item is not None]


def _point(value: Any) -> Optional[Tuple[float, float]]:
    if isinstance(value, (list, tuple)) and len(value) >= 2:
        x, y = to_float(value[0], float("nan")), to_float(value[1], float("nan"))
        if not (np.isnan(x) or np.isnan(y)):
            return (x, y)
    return None


class EntityRef(BaseModel):
    """Resolved cross-reference: enough to display it and to find the full record."""

    model_config = ConfigDict(frozen=True)

    kind: EntityKind = Field(description="Collection the target belongs to")
    index: int = Field(description="Position of the target in its collection")
    id: int = Field(description="Target's own id")
    name: str = Field(description="Target display name")


class Relationship(BaseModel):
    """Diplomatic status towards another country."""

    status: str = Field(description="FMG diplomacy code, e.g. Ally or Rival")
    country: EntityRef = Field(description="The other country")


class MapRecord(BaseModel):
    """Fields shared by every entity record."""

    kind: ClassVar[EntityKind]

    index: int = Field(description="Position in the source collection")
    id: int = Field(description="Record id (FMG 'i'), defaults to the position")
    name: str = Field(default="", description="Display name")
    removed: bool = Field(default=False, description="Marked removed in FMG")
    placeholder: bool = Field(
        default=False, description="Empty or non-object slot kept for alignment"
    )
    raw: Dict[str, Any] = Field(
        default_factory=dict, repr=False, description="Source record, untouched"
    )

    @property
    def is_sentinel(self) -> bool:
        return SENTINEL_NAMES.get(self.kind) == self.name

    @property
    def renderable(self) -> bool:
        """Whether the record belongs in exported collections."""
        return not (
            self.placeholder or self.removed or self.is_sentinel or not self.name
        )

    @classmethod
    def from_record(cls, index: int, record: Any) -> "MapRecord":
        """
        Build a record from one element of an FMG collection.

        Non-object and empty elements become placeholders, as do records that
        fail validation; neither case aborts the import.
        """
        if not isinstance(record, dict) or not record:
            return cls.placeholder_at(index)

        try:
            return cls(
                index=index,
                id=to_int(record.get("i"), index),
                name=_text(record.get("name")),
                removed=record.get("removed") is True,
                raw=record,
                **cls.extract_fields(record),
            )
        except ValidationError as e:
            logger.warning(
                "Invalid record kept as placeholder",
                kind=cls.kind.value,
                index=index,
                error=str(e),
            )
            return cls.placeholder_at(index)

    @classmethod
    def placeholder_at(cls, index: int) -> "MapRecord":
        return cls(index=index, id=index, placeholder=True)

    @classmethod
    def extract_fields(cls, record: Dict[str, Any]) -> Dict[str, Any]:
        return {}


class Culture(MapRecord):
    """Cultural group."""

    kind: ClassVar[EntityKind] = EntityKind.CULTURE

    type: str = Field(default="Generic", description="Culture type")
    expansionism: float = Field(default=1.0, description="Expansion tendency")
    color: Optional[str] = Field(default=None, description="Color in hex format")
    code: str = Field(default="", description="Abbreviated code")
    religion_id: Optional[int] = Field(default=None, description="Religion id")

    religion: Optional[EntityRef] = None

    @classmethod
    def extract_fields(cls, record: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "type": _text(record.get("type")) or "Generic",
            "expansionism": to_float(record.get("expansionism"), 1.0),
            "color": _text(record.get("color")) or None,
            "code": _text(record.get("code")),
            "religion_id": _optional_id(record.get("religion")),
        }


class Religion(MapRecord):
    """Religion, tied to the culture it originated in."""

    kind: ClassVar[EntityKind] = EntityKind.RELIGION

    type: str = Field(default="", description="Folk, Organized, Cult or Heresy")
    form: str = Field(default="", description="Religion form")
    color: Optional[str] = Field(default=None, description="Color in hex format")
    culture_id: Optional[int] = Field(default=None, description="Origin culture id")

    culture: Optional[EntityRef] = None

    @classmethod
    def extract_fields(cls, record: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "type": _text(record.get("type")),
            "form": _text(record.get("form")),
            "color": _text(record.get("color")) or None,
            "culture_id": _optional_id(record.get("culture")),
        }


class Country(MapRecord):
    """Political state ("state" in FMG)."""

    kind: ClassVar[EntityKind] = EntityKind.COUNTRY

    full_name: str = Field(default="", description="Name with government form")
    color: Optional[str] = Field(default=None, description="Color in hex format")
    culture_id: Optional[int] = Field(default=None, description="Dominant culture id")
    capital_id: Optional[int] = Field(default=None, description="Capital settlement id")
    province_indices: List[int] = Field(default_factory=list)
    diplomacy: Optional[List[Any]] = Field(
        default=None, description="Codes aligned with the country collection"
    )
    pole: Optional[Tuple[float, float]] = Field(
        default=None, description="Label anchor point"
    )

    culture: Optional[EntityRef] = None
    capital: Optional[EntityRef] = None
    provinces: List[EntityRef] = Field(default_factory=list)
    settlements: List[EntityRef] = Field(default_factory=list)
    relationships: List[Relationship] = Field(default_factory=list)

    @classmethod
    def extract_fields(cls, record: Dict[str, Any]) -> Dict[str, Any]:
        diplomacy = record.get("diplomacy")
        capital = _optional_id(record.get("capital"))
        return {
            "full_name": _text(record.get("fullName")) or _text(record.get("name")),
            "color": _text(record.get("color")) or None,
            "culture_id": _optional_id(record.get("culture")),
            "capital_id": capital or None,
            "province_indices": _int_list(record.get("provinces")),
            "diplomacy": diplomacy if isinstance(diplomacy, list) else None,
            "pole": _point(record.get("pole")),
        }


class Province(MapRecord):
    """Sub-national grouping of settlements."""

    kind: ClassVar[EntityKind] = EntityKind.PROVINCE

    full_name: str = Field(default="", description="Name with province form")
    color: Optional[str] = Field(default=None, description="Color in hex format")
    state: Optional[int] = Field(default=None, description="Parent country index")
    settlement_indices: List[int] = Field(
        default_factory=list, description="Member settlement ids listed by the file"
    )
    center_settlement_id: Optional[int] = Field(
        default=None, description="Id of the province's central settlement"
    )

    country: Optional[EntityRef] = None
    center_settlement: Optional[EntityRef] = None
    settlements: List[EntityRef] = Field(default_factory=list)

    @property
    def settlement_ids(self) -> List[int]:
        return [ref.id for ref in self.settlements]

    @classmethod
    def extract_fields(cls, record: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "full_name": _text(record.get("fullName")) or _text(record.get("name")),
            "color": _text(record.get("color")) or None,
            "state": _optional_id(record.get("state")),
            "settlement_indices": _int_list(record.get("burgs")),
            "center_settlement_id": _optional_id(record.get("burg")) or None,
        }


class Settlement(MapRecord):
    """City or town ("burg" in FMG)."""

    kind: ClassVar[EntityKind] = EntityKind.SETTLEMENT

    x: float = Field(default=0.0, description="X coordinate")
    y: float = Field(default=0.0, description="Y coordinate")
    population: float = Field(default=0.0, description="Population in FMG points")
    culture_id: Optional[int] = Field(default=None, description="Culture id")
    state: Optional[int] = Field(default=None, description="Country index")
    cell: Optional[int] = Field(default=None, description="Grid cell index")
    port: int = Field(default=0, description="Harbour feature id, 0 if inland")
    province_id: Optional[int] = Field(
        default=None, description="Province id when the file stores one"
    )
    link: Optional[str] = Field(default=None, description="Manual city link")
    mfcg_seed: Optional[str] = Field(default=None, description="Own city seed")

    capital: bool = Field(default=False, description="Is a capital")
    citadel: bool = Field(default=False, description="Has citadel")
    plaza: bool = Field(default=False, description="Has plaza")
    walls: bool = Field(default=False, description="Has walls")
    shanty: bool = Field(default=False, description="Has shanty town")
    temple: bool = Field(default=False, description="Has temple")

    culture: Optional[EntityRef] = None
    country: Optional[EntityRef] = None
    province: Optional[EntityRef] = None
    city_link: Optional[str] = None

    @property
    def coast(self) -> bool:
        return self.port > 0

    @classmethod
    def extract_fields(cls, record: Dict[str, Any]) -> Dict[str, Any]:
        mfcg = record.get("MFCG")
        return {
            "x": to_float(record.get("x")),
            "y": to_float(record.get("y")),
            "population": to_float(record.get("population")),
            "culture_id": _optional_id(record.get("culture")),
            "state": _optional_id(record.get("state")),
            "cell": _optional_id(record.get("cell")),
            "port": to_int(record.get("port"), 0),
            "province_id": _optional_id(record.get("province")),
            "link": _text(record.get("link")) or None,
            "mfcg_seed": _text(mfcg) or None,
            "capital": _flag(record.get("capital")),
            "citadel": _flag(record.get("citadel")),
            "plaza": _flag(record.get("plaza")),
            "walls": _flag(record.get("walls")),
            "shanty": _flag(record.get("shanty")),
            "temple": _flag(record.get("temple")),
        }


class Marker(MapRecord):
    """Point of interest with free-text legend."""

    kind: ClassVar[EntityKind] = EntityKind.MARKER

    x: float = Field(default=0.0, description="X coordinate")
    y: float = Field(default=0.0, description="Y coordinate")
    icon: str = Field(default="", description="Marker icon")
    type: str = Field(default="", description="Marker type")
    cell: Optional[int] = Field(default=None, description="Grid cell index")
    raw_legend: str = Field(default="", repr=False, description="Legend as exported")

    legend: str = ""

    @classmethod
    def extract_fields(cls, record: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "x": to_float(record.get("x")),
            "y": to_float(record.get("y")),
            "icon": _text(record.get("icon")),
            "type": _text(record.get("type")),
            "cell": _optional_id(record.get("cell")),
            "raw_legend": _text(record.get("legend")),
        }


class River(MapRecord):
    """River with its source and mouth cells."""

    kind: ClassVar[EntityKind] = EntityKind.RIVER

    type: str = Field(default="River", description="River, Creek, Brook...")
    source: Optional[int] = Field(default=None, description="Source cell")
    mouth: Optional[int] = Field(default=None, description="Mouth cell")
    discharge: float = Field(default=0.0, description="Discharge in m3/s")
    length: float = Field(default=0.0, description="Length in map units")
    width: float = Field(default=0.0, description="Mouth width")

    @classmethod
    def extract_fields(cls, record: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "type": _text(record.get("type")) or "River",
            "source": _optional_id(record.get("source")),
            "mouth": _optional_id(record.get("mouth")),
            "discharge": to_float(record.get("discharge")),
            "length": to_float(record.get("length")),
            "width": to_float(record.get("width")),
        }


RECORD_TYPES = {
    EntityKind.CULTURE: Culture,
    EntityKind.RELIGION: Religion,
    EntityKind.COUNTRY: Country,
    EntityKind.PROVINCE: Province,
    EntityKind.SETTLEMENT: Settlement,
    EntityKind.MARKER: Marker,
    EntityKind.RIVER: River,
}


class MapSettings(BaseModel):
    """Population constants used for city links."""

    model_config = ConfigDict(frozen=True)

    population_rate: float = Field(default=1000.0, description="People per population point")
    urban_density: float = Field(default=10.0, description="Urban density")
    urbanization: float = Field(default=1.0, description="Urban population multiplier")


class MapContext(BaseModel):
    """Map-wide values threaded through every stage of an import."""

    model_config = ConfigDict(frozen=True)

    seed: str = Field(default="", description="Map seed")
    map_name: str = Field(default="", description="Map name")
    width: float = Field(default=0.0, description="Map width in pixels")
    height: float = Field(default=0.0, description="Map height in pixels")
    source_format: str = Field(default="json", description="'json' or 'legacy'")
    settings: MapSettings = Field(default_factory=MapSettings)
    city_generator_url: str = Field(
        default="https://watabou.github.io/city-generator/",
        description="Base URL for generated city links",
    )


@dataclass
class GridCells:
    """Per-cell attributes flattened into arrays indexed by cell id."""

    river: np.ndarray  # cells.r - river id, 0 when none
    haven: np.ndarray  # cells.haven - adjacent water cell, 0 when none
    points: np.ndarray  # cells.p - (n, 2) coordinates, NaN when missing
    biome: np.ndarray  # cells.biome - biome id
    road: np.ndarray  # cells.road - road strength
    province: np.ndarray  # cells.province - province id, 0 when none

    @classmethod
    def empty(cls, size: int = 0) -> "GridCells":
        return cls(
            river=np.zeros(size, dtype=np.int32),
            haven=np.zeros(size, dtype=np.int32),
            points=np.full((size, 2), np.nan, dtype=np.float64),
            biome=np.zeros(size, dtype=np.int32),
            road=np.zeros(size, dtype=np.float64),
            province=np.zeros(size, dtype=np.int32),
        )

    @property
    def size(self) -> int:
        return len(self.river)

    def contains(self, cell: Optional[int]) -> bool:
        return cell is not None and 0 <= cell < self.size

    def has_river(self, cell: Optional[int]) -> bool:
        return self.contains(cell) and bool(self.river[cell])

    def haven_of(self, cell: Optional[int]) -> Optional[int]:
        if not self.contains(cell):
            return None
        haven = int(self.haven[cell])
        return haven if haven > 0 and self.contains(haven) else None

    def point(self, cell: Optional[int]) -> Optional[Tuple[float, float]]:
        if not self.contains(cell):
            return None
        x, y = self.points[cell]
        if np.isnan(x) or np.isnan(y):
            return None
        return (float(x), float(y))

    def biome_of(self, cell: Optional[int]) -> int:
        return int(self.biome[cell]) if self.contains(cell) else 0

    def road_of(self, cell: Optional[int]) -> float:
        return float(self.road[cell]) if self.contains(cell) else 0.0

    def province_of(self, cell: Optional[int]) -> Optional[int]:
        if not self.contains(cell):
            return None
        province = int(self.province[cell])
        return province or None


@dataclass
class MapDataset:
    """Parser output: one positional collection per entity kind."""

    context: MapContext
    cultures: List[Culture] = field(default_factory=list)
    religions: List[Religion] = field(default_factory=list)
    countries: List[Country] = field(default_factory=list)
    provinces: List[Province] = field(default_factory=list)
    settlements: List[Settlement] = field(default_factory=list)
    markers: List[Marker] = field(default_factory=list)
    rivers: List[River] = field(default_factory=list)
    grid: GridCells = field(default_factory=GridCells.empty)
    notes: List[Dict[str, Any]] = field(default_factory=list)

    def collection(self, kind: EntityKind) -> List[MapRecord]:
        return {
            EntityKind.CULTURE: self.cultures,
            EntityKind.RELIGION: self.religions,
            EntityKind.COUNTRY: self.countries,
            EntityKind.PROVINCE: self.provinces,
            EntityKind.SETTLEMENT: self.settlements,
            EntityKind.MARKER: self.markers,
            EntityKind.RIVER: self.rivers,
        }[kind]
