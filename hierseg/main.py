"""FastAPI app factory."""

from __future__ import annotations

import logging

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hierseg import __version__
from hierseg.config import settings
from hierseg.errors import SegmentationError
from hierseg.models.responses import ErrorResponse

load_dotenv()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)

logger = logging.getLogger(__name__)


async def segmentation_error_handler(request: Request, exc: SegmentationError) -> JSONResponse:
    logger.warning("Rejected %s: %s (%s)", request.url.path, exc, exc.kind)
    body = ErrorResponse(error=exc.kind, message=str(exc))
    return JSONResponse(status_code=422, content=body.model_dump())


def create_app() -> FastAPI:
    app = FastAPI(
        title="hierseg",
        description="Multiscale image segmentation — SLIC superpixels merged into a cuttable hierarchy",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SegmentationError, segmentation_error_handler)

    from hierseg.api.router import api_router

    app.include_router(api_router)

    return app


app = create_app()


def run() -> None:
    """Serve the app with uvicorn (``hierseg`` console script)."""
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
