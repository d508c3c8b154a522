"""
Entity graph assembly.

Provinces, settlements and countries reference each other in a cycle, so the
graph is built in two phases:

1. ``build_records()`` resolves everything that only needs the parsed
   collections: cultures, religions, country diplomacy, settlement culture and
   country, city links and marker legends.
2. ``backfill()`` fills the links that need the other side materialised:
   province members and centre, settlement province, country provinces,
   settlements and capital.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from .derived import city_link, sanitize_legend
from .models import (
    Country,
    Culture,
    EntityKind,
    EntityRef,
    MapContext,
    MapDataset,
    MapRecord,
    Marker,
    Province,
    Religion,
    River,
    Settlement,
)
from .resolver import ReferenceResolver

logger = structlog.get_logger()

COLLECTIONS = (
    "cultures",
    "religions",
    "countries",
    "provinces",
    "settlements",
    "markers",
    "rivers",
)


@dataclass
class EntityGraph:
    """Cross-referenced map entities ready for rendering."""

    context: MapContext
    dataset: MapDataset
    cultures: List[Culture] = field(default_factory=list)
    religions: List[Religion] = field(default_factory=list)
    countries: List[Country] = field(default_factory=list)
    provinces: List[Province] = field(default_factory=list)
    settlements: List[Settlement] = field(default_factory=list)
    markers: List[Marker] = field(default_factory=list)
    rivers: List[River] = field(default_factory=list)

    def table(self, kind: EntityKind) -> List[MapRecord]:
        """Unfiltered positional collection, sentinels included."""
        return self.dataset.collection(kind)

    def get(self, ref: Optional[EntityRef]) -> Optional[MapRecord]:
        """Full record behind a reference."""
        if ref is None:
            return None
        table = self.table(ref.kind)
        if 0 <= ref.index < len(table):
            return table[ref.index]
        return None

    def summary(self) -> Dict[str, int]:
        return {name: len(getattr(self, name)) for name in COLLECTIONS}

    def to_dict(self, include_raw: bool = False) -> Dict[str, Any]:
        """JSON-ready view of the graph; source records are left out unless asked for."""
        exclude = None if include_raw else {"raw"}
        data: Dict[str, Any] = {
            "map": self.context.model_dump(mode="json"),
            "summary": self.summary(),
        }
        for name in COLLECTIONS:
            data[name] = [
                record.model_dump(mode="json", exclude=exclude)
                for record in getattr(self, name)
            ]
        return data


class GraphAssembler:
    """Builds an EntityGraph from a parsed map in two phases."""

    def __init__(self, dataset: MapDataset, resolver: Optional[ReferenceResolver] = None):
        self.dataset = dataset
        self.resolver = resolver or ReferenceResolver(dataset)
        self.context = dataset.context
        self._built = False

    def build_records(self) -> None:
        """Phase 1: references resolvable from the parsed collections alone."""
        resolver = self.resolver

        for culture in self.dataset.cultures:
            if culture.renderable:
                culture.religion = resolver.ref(resolver.religion(culture.religion_id))

        for religion in self.dataset.religions:
            if religion.renderable:
                religion.culture = resolver.ref(resolver.culture(religion.culture_id))

        for country in self.dataset.countries:
            if country.renderable:
                country.culture = resolver.ref(resolver.culture(country.culture_id))
                country.relationships = resolver.relationships(country)

        failed = 0
        for settlement in self.dataset.settlements:
            if not settlement.renderable:
                continue
            settlement.culture = resolver.ref(resolver.culture(settlement.culture_id))
            settlement.country = resolver.ref(resolver.country_at(settlement.state))
            try:
                settlement.city_link = city_link(settlement, self.context, self.dataset.grid)
            except (TypeError, ValueError, OverflowError) as e:
                failed += 1
                logger.warning(
                    "City link skipped",
                    settlement=settlement.name,
                    index=settlement.index,
                    error=str(e),
                )

        for marker in self.dataset.markers:
            if marker.renderable:
                marker.legend = sanitize_legend(marker.raw_legend)

        self._built = True
        logger.debug("Entity records built", city_link_failures=failed)

    def backfill(self) -> None:
        """Phase 2: province, settlement and country links that form a cycle."""
        if not self._built:
            raise RuntimeError("build_records() must run before backfill()")
        resolver = self.resolver

        for province in self.dataset.provinces:
            if not province.renderable:
                continue
            province.country = resolver.ref(resolver.country_at(province.state))
            province.settlements = [
                resolver.ref(s) for s in resolver.province_settlements(province)
            ]
            province.center_settlement = resolver.ref(
                resolver.settlement(province.center_settlement_id)
            )

        for settlement in self.dataset.settlements:
            if settlement.renderable:
                settlement.province = resolver.ref(resolver.province_of(settlement))

        for country in self.dataset.countries:
            if not country.renderable:
                continue
            country.provinces = [resolver.ref(p) for p in resolver.country_provinces(country)]
            country.settlements = [
                resolver.ref(s) for s in resolver.country_settlements(country)
            ]
            country.capital = resolver.ref(resolver.settlement(country.capital_id))

    def assemble(self) -> EntityGraph:
        """Run both phases and collect the renderable records."""
        self.build_records()
        self.backfill()

        def rendered(records):
            return [record for record in records if record.renderable]

        graph = EntityGraph(
            context=self.context,
            dataset=self.dataset,
            cultures=rendered(self.dataset.cultures),
            religions=rendered(self.dataset.religions),
            countries=rendered(self.dataset.countries),
            provinces=rendered(self.dataset.provinces),
            settlements=rendered(self.dataset.settlements),
            markers=rendered(self.dataset.markers),
            rivers=rendered(self.dataset.rivers),
        )
        logger.info("Entity graph assembled", **graph.summary())
        return graph
