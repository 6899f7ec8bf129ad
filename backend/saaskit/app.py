from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from saaskit.api.endpoints import auth, billing, notes, profile, system, users, webhook
from saaskit.core.logging import setup_logging
from saaskit.core.settings import Settings
from saaskit.services.providers import Providers, build_providers


def create_app(settings: Settings | None = None, providers: Providers | None = None) -> FastAPI:
    """Build the API. Configuration is read here once; handlers get it from ``app.state``."""
    settings = settings or Settings()
    setup_logging(settings)
    providers = providers or build_providers(settings)

    app = FastAPI(title="SaaS Starter API")
    app.state.settings = settings
    app.state.providers = providers

    origins = settings.resolved_cors_origins()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(system.router, prefix="/api", tags=["system"])
    app.include_router(auth.router, prefix="/api", tags=["auth"])
    app.include_router(webhook.router, prefix="/api", tags=["billing"])
    app.include_router(billing.router, prefix="/api", tags=["billing"])
    app.include_router(notes.router, prefix="/api", tags=["notes"])
    app.include_router(users.router, prefix="/api", tags=["users"])
    app.include_router(profile.router, prefix="/api", tags=["profile"])
    return app
