"""Pytest configuration and shared fixtures."""

from datetime import timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlmodel import create_engine

from gateway_rules.gateway import Gateway, Thing
from gateway_rules.rules.store import LocalRuleStore, RuleStore


@pytest.fixture
def lamp():
    """A dimmable lamp exposing hrefs directly on its properties."""
    return Thing(
        href="/things/lamp",
        title="Lamp",
        properties={
            "on": {"type": "boolean", "href": "/things/lamp/properties/on"},
            "level": {"type": "number", "href": "/things/lamp/properties/level"},
        },
        actions={"fade": {}},
        events={"overheated": {}},
    )


@pytest.fixture
def sensor():
    """A sensor exposing its property hrefs through links."""
    return Thing(
        href="/things/sensor",
        title="Sensor",
        properties={
            "motion": {
                "type": "boolean",
                "links": [
                    {"rel": "property", "href": "/things/sensor/properties/motion"}
                ],
            },
            "temperature": {
                "type": "number",
                "links": [
                    {"rel": "property", "href": "/things/sensor/properties/temperature"}
                ],
            },
        },
    )


@pytest.fixture
def gateway(lamp, sensor):
    """Create a Gateway catalog holding the lamp and the sensor."""
    return Gateway([lamp, sensor])


@pytest.fixture
def utc():
    return timezone.utc


@pytest.fixture
def mock_store():
    """Create a mock RuleStore that assigns id 7 to created rules."""
    store = MagicMock(spec=RuleStore)
    store.create = AsyncMock(return_value=7)
    store.update = AsyncMock(return_value=None)
    store.remove = AsyncMock(return_value=None)
    store.list_rules = AsyncMock(return_value=[])
    return store


# Database Testing Fixtures


@pytest.fixture
def db_engine():
    """Create an in-memory SQLite database for testing."""
    return create_engine("sqlite:///:memory:", echo=False)


@pytest.fixture
def local_store(db_engine):
    return LocalRuleStore(db_engine)
