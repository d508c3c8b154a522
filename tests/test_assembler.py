"""
Tests for entity graph assembly and the full import pipeline.

Tests cover:
- Round trip of a small map in both formats
- Sentinel, placeholder and removed filtering
- Two-phase assembly
- Per-entity failures not aborting the batch
- JSON output
"""

import json
from unittest.mock import patch

import pytest

from fmg_import import parse
from fmg_import.core.assembler import GraphAssembler
from fmg_import.core.derived import city_link
from fmg_import.core.models import EntityKind
from fmg_import.core.parser import parse_map_data


@pytest.fixture
def graph(modern_text):
    return parse(modern_text)


class TestRoundTrip:
    """Test a small map through the whole pipeline."""

    def test_collections(self, graph):
        """Sentinels and placeholders are left out of the output."""
        assert [c.name for c in graph.countries] == ["Aria", "Borea"]
        assert [c.name for c in graph.cultures] == ["Eldar"]
        assert [r.name for r in graph.religions] == ["Sun Faith"]
        assert [p.name for p in graph.provinces] == ["Northmarch"]
        assert [s.name for s in graph.settlements] == ["Alder", "Birch"]
        assert [m.name for m in graph.markers] == ["Strange Traveller"]
        assert [r.name for r in graph.rivers] == ["Silver"]

    def test_single_country_map(self, modern_document):
        """One real country next to Neutrals yields one country."""
        pack = modern_document["pack"]
        pack["states"] = pack["states"][:2]
        pack["states"][1]["diplomacy"] = ["x", "x"]
        pack["burgs"][2]["state"] = 1
        graph = parse(json.dumps(modern_document))

        assert len(graph.countries) == 1
        assert len(graph.cultures) == 1
        assert all(s.city_link for s in graph.settlements)
        assert graph.provinces[0].settlement_ids == [1, 2]
        assert [s.name for s in graph.countries[0].settlements] == ["Alder", "Birch"]

    def test_settlement_references(self, graph):
        """Settlements point at their culture, country and province."""
        alder, birch = graph.settlements

        assert alder.culture.name == "Eldar"
        assert alder.country.name == "Aria"
        assert alder.province.name == "Northmarch"
        assert birch.country.name == "Borea"
        assert birch.country.index == 2

    def test_city_links(self, graph):
        """Every settlement gets a generated link."""
        alder, birch = graph.settlements

        assert "seed=1234560001" in alder.city_link
        assert "size=25" in alder.city_link
        assert alder.city_link.endswith("&sea=1")
        assert "seed=1234560002" in birch.city_link
        assert "sea=" not in birch.city_link

    def test_country_links(self, graph):
        """Countries know their culture, capital, provinces and relations."""
        aria, borea = graph.countries

        assert aria.culture.name == "Eldar"
        assert aria.capital.name == "Alder"
        assert [p.name for p in aria.provinces] == ["Northmarch"]
        assert [(r.status, r.country.name) for r in aria.relationships] == [("Rival", "Borea")]
        assert borea.capital.name == "Birch"
        assert borea.provinces == []

    def test_province_links(self, graph):
        """Provinces know their country, members and centre."""
        northmarch = graph.provinces[0]

        assert northmarch.country.name == "Aria"
        assert northmarch.settlement_ids == [1, 2]
        assert northmarch.center_settlement.name == "Alder"

    def test_culture_and_religion(self, graph):
        """Religions point back at the culture they started in."""
        assert graph.religions[0].culture.name == "Eldar"
        assert graph.cultures[0].religion is None

    def test_marker_legend(self, graph):
        """Encounter frames become links."""
        legend = graph.markers[0].legend

        assert "<iframe" not in legend
        assert '<a href="https://deorum.vercel.app/encounter/42"' in legend
        assert "<iframe" in graph.markers[0].raw_legend

    def test_legacy_file(self, legacy_text):
        """Legacy saves produce the same entities, without cell-derived data."""
        graph = parse(legacy_text)

        assert [c.name for c in graph.countries] == ["Aria", "Borea"]
        assert [s.name for s in graph.settlements] == ["Alder", "Birch"]
        assert graph.settlements[0].province is None
        assert "seed=6543210001" in graph.settlements[0].city_link
        assert "sea=" not in graph.settlements[0].city_link


class TestFiltering:
    """Test which records reach the output."""

    def test_removed_records(self, modern_document):
        """Removed entities are dropped and nothing references them."""
        modern_document["pack"]["states"][2]["removed"] = True
        graph = parse(json.dumps(modern_document))

        assert [c.name for c in graph.countries] == ["Aria"]
        assert graph.countries[0].relationships == []
        assert graph.settlements[1].country is None

    def test_unnamed_records(self, modern_document):
        """Records without a name are not rendered."""
        modern_document["pack"]["religions"].append({"i": 2, "culture": 1})
        graph = parse(json.dumps(modern_document))

        assert [r.name for r in graph.religions] == ["Sun Faith"]

    def test_sentinels_stay_in_tables(self, graph):
        """Unfiltered tables keep every position."""
        countries = graph.table(EntityKind.COUNTRY)

        assert [c.name for c in countries] == ["Neutrals", "Aria", "Borea"]
        assert graph.get(graph.settlements[1].country) is countries[2]
        assert graph.get(None) is None


class TestAssemblyPhases:
    """Test the two assembly phases."""

    def test_backfill_requires_build(self, modern_text):
        """Phase 2 cannot run first."""
        assembler = GraphAssembler(parse_map_data(modern_text))
        with pytest.raises(RuntimeError):
            assembler.backfill()

    def test_phase_one_leaves_cycle_open(self, modern_text):
        """Province links are only filled by the backfill."""
        dataset = parse_map_data(modern_text)
        assembler = GraphAssembler(dataset)
        assembler.build_records()

        alder = dataset.settlements[1]
        assert alder.country.name == "Aria"
        assert alder.city_link
        assert alder.province is None
        assert dataset.provinces[1].settlements == []

        assembler.backfill()
        assert alder.province.name == "Northmarch"
        assert dataset.provinces[1].settlement_ids == [1, 2]


class TestFailureIsolation:
    """Test that one bad entity does not abort the import."""

    def test_malformed_record_is_not_rendered(self, modern_document):
        """Unusable fields are coerced; a record left without a name keeps its slot."""
        modern_document["pack"]["burgs"][1].update(
            {"name": ["not", "text"], "x": "west", "population": None, "cell": "abc"}
        )
        graph = parse(json.dumps(modern_document))

        assert [s.name for s in graph.settlements] == ["Birch"]
        alder = graph.table(EntityKind.SETTLEMENT)[1]
        assert not alder.renderable
        assert (alder.x, alder.population, alder.cell) == (0.0, 0.0, None)

    def test_non_object_slots(self, modern_document):
        """Numbers and empty objects in a collection become placeholders."""
        modern_document["pack"]["cultures"].insert(1, 0)
        modern_document["pack"]["cultures"].insert(1, {})
        graph = parse(json.dumps(modern_document))

        assert [c.name for c in graph.cultures] == ["Eldar"]
        assert graph.settlements[0].culture.name == "Eldar"

    def test_city_link_failure(self, modern_text):
        """A failing link is skipped and the other settlements still get theirs."""
        def flaky(settlement, context, grid):
            if settlement.name == "Alder":
                raise ValueError("bad settlement")
            return city_link(settlement, context, grid)

        with patch("fmg_import.core.assembler.city_link", side_effect=flaky):
            graph = parse(modern_text)

        alder, birch = graph.settlements
        assert alder.city_link is None
        assert birch.city_link.startswith("https://watabou.github.io/city-generator/")


class TestOutput:
    """Test the JSON view of a graph."""

    def test_to_dict_is_json(self, graph):
        """Output serializes without custom encoders."""
        data = json.loads(json.dumps(graph.to_dict()))

        assert data["map"]["seed"] == "123456"
        assert data["summary"] == {
            "cultures": 1,
            "religions": 1,
            "countries": 2,
            "provinces": 1,
            "settlements": 2,
            "markers": 1,
            "rivers": 1,
        }
        assert data["countries"][0]["relationships"][0]["country"]["kind"] == "country"
        assert "raw" not in data["settlements"][0]

    def test_include_raw(self, graph):
        """Source records are available on request."""
        data = graph.to_dict(include_raw=True)
        assert data["settlements"][0]["raw"]["name"] == "Alder"
