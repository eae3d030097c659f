"""FastAPI application factory for the temporary challenge listener."""

from pathlib import Path
from typing import Sequence

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from .routers import api_create_challenge_router


def create_challenge_application(webroots: Sequence[Path]) -> FastAPI:
    """Create the FastAPI application served on port 80 during certificate requests.

    Args:
        webroots: Webroot directories holding challenge tokens.

    Returns:
        FastAPI: Application serving challenge tokens and a placeholder index.

    Raises:
        ValueError: Raised when no webroot is configured.
    """

    application = FastAPI(title="edge-deploy challenge responder", docs_url=None, redoc_url=None, openapi_url=None)

    @application.get("/", response_class=PlainTextResponse)
    def challenge_index() -> str:
        """Return a placeholder body while certificates are being set up.

        Returns:
            str: Placeholder text.
        """

        return "SSL setup in progress..."

    application.include_router(api_create_challenge_router(webroots=webroots))
    return application
