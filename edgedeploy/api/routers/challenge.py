"""HTTP-01 challenge router serving tokens written by the certificate authority client."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Final, Sequence

from fastapi import APIRouter, status
from fastapi.responses import PlainTextResponse

ACME_CHALLENGE_PATH_PREFIX: Final[str] = "/.well-known/acme-challenge"
_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9_-]+$")


def api_create_challenge_router(webroots: Sequence[Path]) -> APIRouter:
    """Create router exposing challenge tokens from one or more webroots.

    Tokens are looked up as `<webroot>/.well-known/acme-challenge/<token>`,
    the layout certbot's webroot plugin writes. Webroots are searched in order.

    Args:
        webroots: Webroot directories shared with the certificate authority client.

    Returns:
        APIRouter: Router exposing the challenge endpoint.

    Raises:
        ValueError: Raised when no webroot is configured.
    """

    if not webroots:
        raise ValueError("webroots must not be empty")

    challenge_directories = tuple(
        Path(webroot).resolve() / ACME_CHALLENGE_PATH_PREFIX.lstrip("/") for webroot in webroots
    )
    router = APIRouter(tags=["challenge"])

    @router.get(ACME_CHALLENGE_PATH_PREFIX + "/{token}", response_class=PlainTextResponse)
    def api_challenge_token(token: str) -> PlainTextResponse:
        """Return the key authorization for one challenge token.

        Args:
            token: ACME challenge token from the request path.

        Returns:
            PlainTextResponse: Key authorization text, or 404 when unknown.

        Raises:
            RuntimeError: This handler does not raise runtime errors.
        """

        if not _TOKEN_PATTERN.match(token):
            return PlainTextResponse("not found", status_code=status.HTTP_404_NOT_FOUND)

        for challenge_directory in challenge_directories:
            token_path = challenge_directory / token
            if token_path.is_file():
                return PlainTextResponse(token_path.read_text(encoding="ascii").strip())
        return PlainTextResponse("not found", status_code=status.HTTP_404_NOT_FOUND)

    return router
