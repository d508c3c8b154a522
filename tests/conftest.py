"""
Shared map fixtures.

``modern_document`` is a small full JSON export; ``legacy_lines`` holds the
same entities in the line-oriented ``.map`` layout, mixed with the kind of
non-JSON lines real save files are full of.
"""

import copy
import json

import pytest

from fmg_import.core.models import GridCells

ENCOUNTER_LEGEND = (
    "<div>You have encountered a character.</div>"
    '<div><iframe src="https://deorum.vercel.app/encounter/42" width="375" '
    'height="600"></iframe></div>'
)

CULTURES = [
    {"i": 0, "name": "Wildlands", "base": 1, "shield": "round"},
    {"i": 1, "name": "Eldar", "type": "Naval", "expansionism": 1.5,
     "color": "#ff0000", "code": "El", "center": 1},
]

COUNTRIES = [
    {"i": 0, "name": "Neutrals", "urban": 0, "diplomacy": [["Chronicle entry"]]},
    {"i": 1, "name": "Aria", "fullName": "Kingdom of Aria", "color": "#00aaff",
     "culture": 1, "provinces": [1], "diplomacy": ["x", "x", "Rival"],
     "pole": [100, 200], "capital": 1},
    {"i": 2, "name": "Borea", "fullName": "Borean Republic", "color": "#aa00ff",
     "culture": 1, "provinces": [], "diplomacy": ["x", "Rival", "x"],
     "pole": [300, 100], "capital": 2},
]

PROVINCES = [
    0,
    {"i": 1, "name": "Northmarch", "fullName": "Duchy of Northmarch", "state": 1,
     "center": 1, "burg": 1, "color": "#123456"},
]

SETTLEMENTS = [
    {},
    {"i": 1, "name": "Alder", "x": 10, "y": 20, "cell": 1, "population": 5.5,
     "culture": 1, "state": 1, "capital": 1, "port": 1, "citadel": 1, "plaza": 1,
     "walls": 1, "shanty": 0, "temple": 1},
    {"i": 2, "name": "Birch", "x": 30, "y": 40, "cell": 2, "population": 1.2,
     "culture": 1, "state": 2, "capital": 1, "port": 0, "citadel": 1, "plaza": 0,
     "walls": 0, "shanty": 1, "temple": 0},
]

RELIGIONS = [
    {"i": 0, "name": "No religion"},
    {"i": 1, "name": "Sun Faith", "culture": 1, "type": "Organized",
     "form": "Monotheism", "color": "#ffcc00"},
]

RIVERS = [
    {"i": 1, "name": "Silver", "type": "River", "source": 2, "mouth": 3,
     "discharge": 12.5, "length": 40, "width": 1.2},
]

MARKERS = [
    {"i": 0, "icon": "\U0001f9d9", "type": "encounters", "x": 50, "y": 60, "cell": 3},
]

NOTES = [
    {"id": "marker0", "name": "Strange Traveller", "legend": ENCOUNTER_LEGEND},
]

CELLS = [
    {"i": 0, "p": [0, 0], "r": 0, "haven": 0, "biome": 0, "road": 0, "province": 0},
    {"i": 1, "p": [10, 20], "r": 0, "haven": 3, "biome": 3, "road": 60, "province": 1},
    {"i": 2, "p": [30, 40], "r": 1, "haven": 0, "biome": 3, "road": 0, "province": 1},
    {"i": 3, "p": [10, 10], "r": 0, "haven": 0, "biome": 0, "road": 0, "province": 0},
]


def build_modern_document():
    return copy.deepcopy({
        "info": {"version": "1.99", "seed": "123456", "mapName": "Testland",
                 "width": 1000, "height": 500},
        "settings": {"populationRate": 1000, "urbanDensity": 10, "urbanization": 1,
                     "mapName": "Testland"},
        "pack": {
            "cultures": CULTURES,
            "states": COUNTRIES,
            "provinces": PROVINCES,
            "burgs": SETTLEMENTS,
            "religions": RELIGIONS,
            "rivers": RIVERS,
            "markers": MARKERS,
            "cells": CELLS,
        },
        "notes": NOTES,
    })


def build_legacy_lines():
    settings_fields = [""] * 25
    settings_fields[12] = "500"
    settings_fields[13] = "2"
    settings_fields[20] = "Old Testland"
    settings_fields[24] = "8"
    return [
        "1.73|File can be loaded in azgaar.github.io/Fantasy-Map-Generator|2022-05-01|654321|1000|500|123",
        "|".join(settings_fields),
        '<svg id="map" width="1000" height="500"><g id="viewbox"></g></svg>',
        "0,1,2,3,4,5",
        "not json {",
        "[1, 2, 3]",
        '{"some": "object"}',
        "42",
        "[]",
        json.dumps(CULTURES),
        json.dumps(COUNTRIES),
        json.dumps(PROVINCES),
        json.dumps(SETTLEMENTS),
        json.dumps(RELIGIONS),
        json.dumps(RIVERS),
        json.dumps(MARKERS),
        json.dumps(NOTES),
        "Shwelf,Shwer,Anfleon|Eldar names",
    ]


@pytest.fixture
def modern_document():
    """Full JSON export as a dict."""
    return build_modern_document()


@pytest.fixture
def modern_text(modern_document):
    """Full JSON export as text."""
    return json.dumps(modern_document)


@pytest.fixture
def legacy_lines():
    """Lines of a legacy .map save file."""
    return build_legacy_lines()


@pytest.fixture
def legacy_text(legacy_lines):
    """Legacy .map save file as text."""
    return "\r\n".join(legacy_lines)


@pytest.fixture
def grid():
    """
    Four-cell grid: cell 1 has a haven (cell 3) straight north of it,
    cell 2 has a river, biome 3 on both.
    """
    cells = GridCells.empty(4)
    cells.points[:] = [[0, 0], [10, 20], [30, 40], [10, 10]]
    cells.haven[1] = 3
    cells.river[2] = 1
    cells.biome[1] = 3
    cells.biome[2] = 3
    cells.road[1] = 60
    return cells
