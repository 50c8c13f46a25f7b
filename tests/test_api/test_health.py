"""Tests for liveness endpoints."""

import pytest

pytestmark = pytest.mark.asyncio


async def test_root(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": "Price Scheduler API is running!"}


async def test_health_check(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
