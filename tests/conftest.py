"""
Shared fixtures.

HTTP tests run the real app against an in-memory Motor-compatible database
(mongomock-motor), so no MongoDB server is needed:

    pytest tests/ -v
"""

import asyncio
import itertools

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from server import create_app

_codes = itertools.count(10010100200)


def make_school(**overrides):
    """Valid create payload; each call gets a fresh UDISE code unless one is given"""
    payload = {
        "udise_code": str(next(_codes)),
        "school_name": "Govt Primary School",
        "state": "MP",
        "district": "Bhopal",
        "block": "B1",
        "village": "V1",
        "management": "Government",
        "location": "Rural",
        "school_type": "Co-Ed",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def db():
    return AsyncMongoMockClient()["udise_test"]


@pytest.fixture
def run():
    """Run a coroutine against the mock database from a sync test"""
    return asyncio.run


@pytest.fixture
def client(db):
    app = create_app(database=db)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client):
    response = client.post(
        "/api/auth/signup",
        json={"email": "editor@example.com", "password": "secret123"},
    )
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def create_school(client, auth_headers):
    """POST a school and return the stored record"""
    def _create(**overrides):
        response = client.post("/api/data", json=make_school(**overrides), headers=auth_headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]
    return _create
