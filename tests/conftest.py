"""Shared fixtures for the signon test suite."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tests.helpers import FakeGitHub, FakeOIDC, make_client, make_settings


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def fake_oidc() -> FakeOIDC:
    return FakeOIDC()


@pytest.fixture
def client(fake_github: FakeGitHub) -> TestClient:
    return make_client(make_settings(), fake_github)
