"""Tests for the temporary uvicorn challenge listener."""

from __future__ import annotations

import socket
from pathlib import Path

import httpx
import pytest

from edgedeploy.adapters import UvicornChallengeListener, listener_port_in_use
from edgedeploy.api import create_challenge_application


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as free_socket:
        free_socket.bind(("127.0.0.1", 0))
        return free_socket.getsockname()[1]


def test_adapters_listener_reports_port_already_served(tmp_path: Path) -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as proxy_socket:
        proxy_socket.bind(("127.0.0.1", 0))
        proxy_socket.listen()
        port = proxy_socket.getsockname()[1]
        listener = UvicornChallengeListener(create_challenge_application(webroots=[tmp_path]), host="127.0.0.1", port=port)

        assert listener_port_in_use("127.0.0.1", port)
        assert listener.listener_start() is False
        assert not listener.listener_is_running()
        listener.listener_stop()


def test_adapters_listener_serves_challenge_application_until_stopped(tmp_path: Path) -> None:
    port = _free_port()
    listener = UvicornChallengeListener(create_challenge_application(webroots=[tmp_path]), host="127.0.0.1", port=port)

    assert not listener_port_in_use("127.0.0.1", port)
    assert listener.listener_start() is True
    try:
        assert listener.listener_is_running()
        with httpx.Client(timeout=5, trust_env=False) as http_client:
            response = http_client.get(f"http://127.0.0.1:{port}/")
        assert response.text == "SSL setup in progress..."
    finally:
        listener.listener_stop()

    assert not listener.listener_is_running()


def test_adapters_listener_rejects_invalid_configuration(tmp_path: Path) -> None:
    application = create_challenge_application(webroots=[tmp_path])

    with pytest.raises(ValueError):
        UvicornChallengeListener(application, port=0)
    with pytest.raises(ValueError):
        UvicornChallengeListener(application, startup_timeout_seconds=0)
