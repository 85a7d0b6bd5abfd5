"""One-shot endpoints: render a label map, segment to N regions, plain SLIC."""

from __future__ import annotations

import asyncio
import functools
import logging
import time

from fastapi import APIRouter, Depends

from hierseg.api.common import elapsed_ms, encode_bitmap, engine_config, load_image
from hierseg.config import Settings
from hierseg.dependencies import get_settings
from hierseg.engine import pipeline
from hierseg.models.requests import DisplayRequest, SegmentRequest, SlicRequest
from hierseg.models.responses import BitmapResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/display", response_model=BitmapResponse)
async def display(req: DisplayRequest, settings: Settings = Depends(get_settings)) -> BitmapResponse:
    start = time.perf_counter()
    pixels = load_image(req, settings)
    bitmap = pipeline.display_labels(
        pixels, req.width, req.height, req.labels,
        mode=req.mode, draw_boundaries=req.draw_boundaries,
    )
    return BitmapResponse(
        width=req.width, height=req.height,
        bitmap=encode_bitmap(bitmap), processing_time_ms=elapsed_ms(start),
    )


@router.post("/segment", response_model=BitmapResponse)
async def segment(req: SegmentRequest, settings: Settings = Depends(get_settings)) -> BitmapResponse:
    start = time.perf_counter()
    pixels = load_image(req, settings)
    config = engine_config(settings)

    loop = asyncio.get_running_loop()
    bitmap = await loop.run_in_executor(
        None,
        functools.partial(
            pipeline.hierarchical_segmentation,
            pixels, req.width, req.height, req.channels, req.target_region_count,
            oversampling=req.oversampling, config=config,
        ),
    )
    logger.info("Segmented %d×%d image in %.0fms", req.width, req.height, elapsed_ms(start))
    return BitmapResponse(
        width=req.width, height=req.height,
        bitmap=encode_bitmap(bitmap), processing_time_ms=elapsed_ms(start),
    )


@router.post("/slic", response_model=BitmapResponse)
async def slic(req: SlicRequest, settings: Settings = Depends(get_settings)) -> BitmapResponse:
    start = time.perf_counter()
    pixels = load_image(req, settings)
    config = engine_config(settings)

    loop = asyncio.get_running_loop()
    bitmap = await loop.run_in_executor(
        None,
        functools.partial(
            pipeline.slic,
            pixels, req.width, req.height, req.channels, req.num_superpixels, req.compactness,
            config=config, draw_boundaries=req.draw_boundaries,
        ),
    )
    return BitmapResponse(
        width=req.width, height=req.height,
        bitmap=encode_bitmap(bitmap), processing_time_ms=elapsed_ms(start),
    )
