"""API router package for endpoint composition."""

from .challenge import ACME_CHALLENGE_PATH_PREFIX, api_create_challenge_router

__all__ = ["ACME_CHALLENGE_PATH_PREFIX", "api_create_challenge_router"]
