"""
Map pin placement.

Computes where the caller should drop a pin for each country, province,
settlement and marker, scaled from map pixels to the size of the target
scene. Creating the pins, and hiding them by zoom level, is up to the caller.
"""

from typing import List, Optional

import structlog
from pydantic import BaseModel, Field

from .assembler import EntityGraph
from .models import EntityRef, MapRecord
from .resolver import ReferenceResolver

logger = structlog.get_logger()


class PinOptions(BaseModel):
    """How pins are scaled and styled."""

    target_width: Optional[float] = Field(
        default=None, gt=0, description="Scene width; defaults to the map width"
    )
    target_height: Optional[float] = Field(
        default=None, gt=0, description="Scene height; defaults to the map height"
    )
    use_colors: bool = Field(default=False, description="Tint pins with entity colors")
    default_tint: str = Field(default="#00FF00", description="Tint when not colored")
    icon_size: int = Field(default=32, description="Icon size in pixels")
    font_size: int = Field(default=24, description="Label font size")
    text_color: str = Field(default="#00FFFF", description="Label color")
    text_anchor: str = Field(default="center", description="Label position relative to the icon")


class MapPin(BaseModel):
    """One pin to place on the scene."""

    entity: EntityRef = Field(description="Entity the pin opens")
    x: float = Field(description="Scene X coordinate")
    y: float = Field(description="Scene Y coordinate")
    label: str = Field(description="Pin text")
    tint: str = Field(description="Icon tint")
    icon_size: int = Field(description="Icon size in pixels")
    font_size: int = Field(description="Label font size")
    text_color: str = Field(description="Label color")
    text_anchor: str = Field(description="Label position relative to the icon")


def _scale(target: Optional[float], source: float) -> float:
    if target is None or source <= 0:
        return 1.0
    return target / source


def build_pins(graph: EntityGraph, options: Optional[PinOptions] = None) -> List[MapPin]:
    """
    Pins for every renderable entity with a position.

    Countries are pinned at their pole, provinces at their central
    settlement; countries without a pole and provinces without a central
    settlement get no pin.
    """
    options = options or PinOptions()
    x_scale = _scale(options.target_width, graph.context.width)
    y_scale = _scale(options.target_height, graph.context.height)

    def pin(record: MapRecord, x: float, y: float) -> MapPin:
        color = getattr(record, "color", None)
        return MapPin(
            entity=ReferenceResolver.ref(record),
            x=x * x_scale,
            y=y * y_scale,
            label=record.name,
            tint=color if options.use_colors and color else options.default_tint,
            icon_size=options.icon_size,
            font_size=options.font_size,
            text_color=options.text_color,
            text_anchor=options.text_anchor,
        )

    pins: List[MapPin] = []
    for country in graph.countries:
        if country.pole is not None:
            pins.append(pin(country, *country.pole))

    for province in graph.provinces:
        center = graph.get(province.center_settlement)
        if center is not None:
            pins.append(pin(province, center.x, center.y))

    for settlement in graph.settlements:
        pins.append(pin(settlement, settlement.x, settlement.y))

    for marker in graph.markers:
        pins.append(pin(marker, marker.x, marker.y))

    logger.info("Map pins computed", count=len(pins), x_scale=x_scale, y_scale=y_scale)
    return pins
