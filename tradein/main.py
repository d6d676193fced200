from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from tradein.config import settings
from tradein.errors import register_exception_handlers
from tradein.log import init_logging
from tradein.routes.pages import router as pages_router
from tradein.routes.pricing import router as pricing_router
from tradein.routes.tradeins import router as tradeins_router
from tradein.routes.valuation import router as valuation_router
from tradein.services import Services, sweeper_lifespan

STATIC_DIR = Path(__file__).resolve().parent / "static"
CORS_ORIGIN = "*"

init_logging(
    root_level="INFO",
    app_level="DEBUG" if settings.is_dev else "INFO",
    third_party_level="WARNING",
)


def create_app(services: Optional[Services] = None) -> FastAPI:
    application = FastAPI(title="Trade-In Desk", lifespan=sweeper_lifespan)
    application.state.services = services or Services.build(settings)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=[CORS_ORIGIN],
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )
    register_exception_handlers(application, allow_origin=CORS_ORIGIN)

    application.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
    application.include_router(pages_router)
    application.include_router(valuation_router)
    application.include_router(pricing_router)
    application.include_router(tradeins_router)

    @application.get("/health")
    async def health():
        return {"status": "ok"}

    return application


app = create_app()
