"""FastAPI application entrypoint and configuration.

This module provides the application factory that configures logging,
includes the database provisioning router and exposes a health check
endpoint for monitoring.

Example:
    The application can be run with uvicorn:
        $ uvicorn postgis_setup.main:app

    Or imported and used programmatically:
        >>> from postgis_setup.main import create_app
        >>> app = create_app()
"""

import fastapi

from postgis_setup.api import databases
from postgis_setup.core import config


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance ready for ASGI server.
    """
    settings = config.get_settings()
    config.configure_logging(settings.log_level)
    app = fastapi.FastAPI(title="PostGIS Setup", version="0.1.0")

    app.include_router(databases.router)

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "ok" if the service is running.
        """
        return {"status": "ok"}

    return app


app = create_app()
