# brouter_client/main.py

from fastapi import FastAPI

from brouter_client.api.v1 import routes_health, routes_routing
from brouter_client.core.config import settings


def create_app() -> FastAPI:
    app = FastAPI(
        title="brouter routing API",
        version=settings.APP_VERSION,
        description="Routes computed by a remote or local brouter engine, served as GPX.",
    )

    # Routers
    app.include_router(routes_health.router, prefix="", tags=["health"])
    app.include_router(routes_routing.router, prefix="", tags=["routing"])

    return app


app = create_app()
