"""
Cross-reference lookups between the collections of a parsed map.

FMG references entities two ways. Cultures, religions, provinces and
settlements are referenced by their own id (``i``); countries are referenced
by position in the ``states`` array, and diplomacy codes are aligned with
that same array. Both lookups are kept here, over the unfiltered collections,
so that dropping sentinel or removed records from the output never changes
what a reference points at.

Every lookup tolerates bad input: a missing, negative or out-of-range
reference resolves to None.
"""

from typing import Dict, Iterable, List, Optional, Sequence, TypeVar

import structlog

from .models import (
    Country,
    Culture,
    EntityRef,
    MapDataset,
    MapRecord,
    Province,
    Relationship,
    Religion,
    Settlement,
)

logger = structlog.get_logger()

# Diplomacy code for "no relation": self, removed countries, Neutrals
NO_RELATION = "x"

R = TypeVar("R", bound=MapRecord)


def _index_by_id(records: Iterable[R]) -> Dict[int, R]:
    table: Dict[int, R] = {}
    for record in records:
        if record.placeholder:
            continue
        # First record wins when an old file repeats an id
        table.setdefault(record.id, record)
    return table


def _at(records: Sequence[R], index: Optional[int]) -> Optional[R]:
    if isinstance(index, int) and 0 <= index < len(records):
        return records[index]
    return None


class ReferenceResolver:
    """Id and position lookups over one parsed map."""

    def __init__(self, dataset: MapDataset):
        """
        Build lookup tables.

        Args:
            dataset: Parsed map; its collections are not modified
        """
        self.dataset = dataset
        self.grid = dataset.grid

        self.cultures_by_id: Dict[int, Culture] = _index_by_id(dataset.cultures)
        self.religions_by_id: Dict[int, Religion] = _index_by_id(dataset.religions)
        self.provinces_by_id: Dict[int, Province] = _index_by_id(dataset.provinces)
        self.settlements_by_id: Dict[int, Settlement] = _index_by_id(dataset.settlements)

        # Settlement id -> province id from provinces that list their members
        self._listed_province: Dict[int, int] = {}
        for province in dataset.provinces:
            if province.placeholder:
                continue
            for settlement_id in province.settlement_indices:
                self._listed_province.setdefault(settlement_id, province.id)

        self._settlement_province: Optional[Dict[int, int]] = None

    # Raw lookups: return sentinel and removed records too

    def culture(self, culture_id: Optional[int]) -> Optional[Culture]:
        return self.cultures_by_id.get(culture_id) if culture_id is not None else None

    def religion(self, religion_id: Optional[int]) -> Optional[Religion]:
        return self.religions_by_id.get(religion_id) if religion_id is not None else None

    def province(self, province_id: Optional[int]) -> Optional[Province]:
        return self.provinces_by_id.get(province_id) if province_id is not None else None

    def settlement(self, settlement_id: Optional[int]) -> Optional[Settlement]:
        if settlement_id is None:
            return None
        return self.settlements_by_id.get(settlement_id)

    def country_at(self, index: Optional[int]) -> Optional[Country]:
        return _at(self.dataset.countries, index)

    def province_at(self, index: Optional[int]) -> Optional[Province]:
        return _at(self.dataset.provinces, index)

    def settlement_at(self, index: Optional[int]) -> Optional[Settlement]:
        return _at(self.dataset.settlements, index)

    # Rendered references

    @staticmethod
    def ref(record: Optional[MapRecord]) -> Optional[EntityRef]:
        """Summary reference, or None when the target is not rendered."""
        if record is None or not record.renderable:
            return None
        return EntityRef(
            kind=record.kind, index=record.index, id=record.id, name=record.name
        )

    def relationships(self, country: Country) -> List[Relationship]:
        """
        Diplomatic relations of a country, by walking its diplomacy codes.

        Position ``j`` of ``diplomacy`` is the status towards country ``j``.
        The country's own slot, "x" codes and targets that are not rendered
        are skipped.
        """
        if country.diplomacy is None:
            return []

        relations = []
        for index, status in enumerate(country.diplomacy):
            if index == country.index or not isinstance(status, str):
                continue
            if status == NO_RELATION or not status:
                continue
            target = self.ref(self.country_at(index))
            if target is None:
                continue
            relations.append(Relationship(status=status, country=target))
        return relations

    def province_of(self, settlement: Settlement) -> Optional[Province]:
        """
        Province a settlement belongs to.

        The settlement's own field wins, then the province of its grid cell,
        then any province listing it as a member.
        """
        for province_id in (
            settlement.province_id,
            self.grid.province_of(settlement.cell),
            self._listed_province.get(settlement.id),
        ):
            province = self.province(province_id)
            if province is not None and province.renderable:
                return province
        return None

    def _membership(self) -> Dict[int, int]:
        # Settlement index -> province id, computed once
        if self._settlement_province is None:
            self._settlement_province = {}
            for settlement in self.dataset.settlements:
                if not settlement.renderable:
                    continue
                owner = self.province_of(settlement)
                if owner is not None:
                    self._settlement_province[settlement.index] = owner.id
        return self._settlement_province

    def province_settlements(self, province: Province) -> List[Settlement]:
        """Renderable settlements of a province, in settlement order."""
        listed = set(province.settlement_indices)
        membership = self._membership()
        return [
            settlement
            for settlement in self.dataset.settlements
            if settlement.renderable
            and (
                settlement.id in listed
                or membership.get(settlement.index) == province.id
            )
        ]

    def country_provinces(self, country: Country) -> List[Province]:
        """
        Renderable provinces of a country.

        Uses the country's province list when present, otherwise every
        province whose ``state`` points at the country.
        """
        if country.province_indices:
            provinces = [self.province(i) for i in country.province_indices]
        else:
            provinces = [p for p in self.dataset.provinces if p.state == country.index]
        return [p for p in provinces if p is not None and p.renderable]

    def country_settlements(self, country: Country) -> List[Settlement]:
        return [
            s
            for s in self.dataset.settlements
            if s.renderable and s.state == country.index
        ]
