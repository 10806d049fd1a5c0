from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nom035.domain.catalog import load_catalog
from nom035.infrastructure.config import get_settings
from nom035.web.routes import api


def create_application() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app.title,
        version=settings.app.version,
        debug=settings.app.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.web.cors_origins,
        allow_credentials=True,
        allow_methods=settings.web.cors_methods,
        allow_headers=["*"],
    )

    app.include_router(api.router)

    # catalog/mapping drift fails at startup
    load_catalog()

    return app


app = create_application()
