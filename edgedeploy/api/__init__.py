"""API layer package for the HTTP-01 challenge responder application."""

from .application import create_challenge_application

__all__ = ["create_challenge_application"]
