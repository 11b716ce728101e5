"""FastAPI status application."""

import logging

from fastapi import FastAPI

from netpinger.version import __version__
from netpinger.web.routes import api, health

logger = logging.getLogger(__name__)


def create_app(engine) -> FastAPI:
    """Build the status app for a running engine.

    The engine is owned by the caller; routes only read its snapshot.
    """
    app = FastAPI(
        title="netpinger",
        description="ICMP group liveness monitor",
        version=__version__,
    )
    app.state.engine = engine

    app.include_router(health.router, tags=["Health"])
    app.include_router(api.router, prefix="/api", tags=["API"])

    return app
