import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backoffice.application import get_batch_runner
from backoffice.core.logging import configure_logging
from backoffice.routes import activity, batches, partners, users, webhook


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await get_batch_runner().drain()


def create_app() -> FastAPI:
    configure_logging(os.getenv("LOG_LEVEL"), os.getenv("LOG_FORMAT"))

    app = FastAPI(title="Credit Back-Office API", version="0.1.0", lifespan=lifespan)

    origins_env = os.getenv("API_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
    if not origins:
        origins = ["http://localhost:3000", "http://127.0.0.1:3000"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(batches.router, prefix="/api")
    app.include_router(webhook.router, prefix="/api")
    app.include_router(partners.router, prefix="/api")
    app.include_router(users.router, prefix="/api")
    app.include_router(activity.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Credit Back-Office API",
                "docs": "/docs",
                "health": "/api/batches",
            }
        )

    return app


app = create_app()
