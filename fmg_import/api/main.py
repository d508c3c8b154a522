"""FastAPI application exposing the import pipeline."""

from typing import Any, Dict, List, Optional

import structlog
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from ..config import settings
from ..core.assembler import EntityGraph
from ..core.parser import MapFormatError
from ..core.pins import MapPin, PinOptions, build_pins
from ..core.pipeline import parse
from ..utils.log_config import configure_logging

configure_logging(settings.log_level, settings.log_format)

logger = structlog.get_logger()

app = FastAPI(
    title="FMG Import API",
    description="Import Azgaar's Fantasy Map Generator exports as cross-referenced entities",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.allowed_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class PinsResponse(BaseModel):
    """Pins computed for an uploaded map."""

    map_name: str
    width: float
    height: float
    count: int
    pins: List[MapPin] = Field(default_factory=list)


async def _read_upload(request: Request) -> bytes:
    raw = await request.body()
    limit = settings.max_upload_mb * 1024 * 1024
    if len(raw) > limit:
        raise HTTPException(
            status_code=413, detail=f"Map file exceeds {settings.max_upload_mb} MB"
        )
    return raw


def _import(raw: bytes) -> EntityGraph:
    try:
        return parse(raw)
    except MapFormatError as e:
        logger.error("Map import failed", error=str(e))
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "FMG Import API",
        "version": "0.1.0",
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.post("/maps/import")
async def import_map(request: Request, include_raw: bool = False) -> Dict[str, Any]:
    """
    Import a map file sent as the request body.

    Returns the map settings, entity counts and every rendered entity.
    """
    raw = await _read_upload(request)
    logger.info("Map import requested", size=len(raw))
    graph = _import(raw)
    return graph.to_dict(include_raw=include_raw)


@app.post("/maps/import/pins", response_model=PinsResponse)
async def import_map_pins(
    request: Request,
    width: Optional[float] = Query(None, gt=0, description="Scene width"),
    height: Optional[float] = Query(None, gt=0, description="Scene height"),
    use_colors: bool = Query(False, description="Tint pins with entity colors"),
):
    """Import a map file and return the pins to place on a scene."""
    raw = await _read_upload(request)
    graph = _import(raw)
    pins = build_pins(
        graph, PinOptions(target_width=width, target_height=height, use_colors=use_colors)
    )
    return PinsResponse(
        map_name=graph.context.map_name,
        width=width or graph.context.width,
        height=height or graph.context.height,
        count=len(pins),
        pins=pins,
    )
