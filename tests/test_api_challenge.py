"""Tests for the temporary HTTP-01 challenge responder."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from edgedeploy.api import create_challenge_application


def _write_token(webroot: Path, token: str, key_authorization: str) -> None:
    challenge_directory = webroot / ".well-known" / "acme-challenge"
    challenge_directory.mkdir(parents=True, exist_ok=True)
    (challenge_directory / token).write_text(key_authorization + "\n", encoding="ascii")


def test_api_challenge_serves_token_from_any_webroot(tmp_path: Path) -> None:
    first_webroot = tmp_path / "first"
    second_webroot = tmp_path / "second"
    _write_token(second_webroot, "tok-123_abc", "tok-123_abc.thumbprint")
    client = TestClient(create_challenge_application(webroots=[first_webroot, second_webroot]))

    response = client.get("/.well-known/acme-challenge/tok-123_abc")

    assert response.status_code == 200
    assert response.text == "tok-123_abc.thumbprint"


def test_api_challenge_unknown_token_returns_not_found(tmp_path: Path) -> None:
    client = TestClient(create_challenge_application(webroots=[tmp_path]))

    response = client.get("/.well-known/acme-challenge/missing")

    assert response.status_code == 404


def test_api_challenge_rejects_tokens_outside_token_alphabet(tmp_path: Path) -> None:
    (tmp_path / "secret.txt").write_text("do not serve", encoding="ascii")
    client = TestClient(create_challenge_application(webroots=[tmp_path / "www"]))

    response = client.get("/.well-known/acme-challenge/..%2F..%2Fsecret.txt")

    assert response.status_code == 404
    assert "do not serve" not in response.text


def test_api_challenge_index_reports_setup_in_progress(tmp_path: Path) -> None:
    client = TestClient(create_challenge_application(webroots=[tmp_path]))

    response = client.get("/")

    assert response.status_code == 200
    assert response.text == "SSL setup in progress..."


def test_api_challenge_requires_webroot() -> None:
    with pytest.raises(ValueError):
        create_challenge_application(webroots=[])
