"""Tests for Home Assistant collector."""

from datetime import datetime
from unittest.mock import patch

import httpx
import pytest
from habits.clock import FixedClock
from habits.collectors import home_assistant
from habits.engine import SuggestionEngine
from habits.models import ActionKind, ActionValue


def local(ts: str) -> datetime:
    return datetime.fromisoformat(ts).astimezone().replace(tzinfo=None)


HISTORY = [
    [
        {
            "entity_id": "light.kitchen",
            "state": "off",
            "last_changed": "2026-01-29T06:00:00+00:00",
            "attributes": {"friendly_name": "Kitchen Light"},
        },
        {
            "entity_id": "light.kitchen",
            "state": "on",
            "last_changed": "2026-01-29T07:00:00+00:00",
            "attributes": {"friendly_name": "Kitchen Light", "brightness": 128},
        },
        {
            "entity_id": "light.kitchen",
            "state": "on",
            "last_changed": "2026-01-29T07:00:00+00:00",
            "last_updated": "2026-01-29T07:05:00+00:00",
            "attributes": {"friendly_name": "Kitchen Light", "brightness": 200},
        },
        {
            "entity_id": "light.kitchen",
            "state": "unavailable",
            "last_changed": "2026-01-29T07:30:00+00:00",
        },
        {
            "entity_id": "light.kitchen",
            "state": "off",
            "last_changed": "2026-01-29T08:00:00+00:00",
            "attributes": {"friendly_name": "Kitchen Light"},
        },
    ],
    [
        {
            "entity_id": "scene.movie_night",
            "state": "2026-01-20T21:00:00+00:00",
            "last_changed": "2026-01-20T21:00:00+00:00",
            "attributes": {"friendly_name": "Movie Night"},
        },
        {
            "entity_id": "scene.movie_night",
            "state": "2026-01-29T21:00:00+00:00",
            "last_changed": "2026-01-29T21:00:00+00:00",
            "attributes": {"friendly_name": "Movie Night"},
        },
    ],
]


def response(status_code=200, **kwargs):
    return httpx.Response(status_code, request=httpx.Request("GET", "http://ha.local"), **kwargs)


@pytest.fixture
def mock_client():
    with patch("habits.collectors.home_assistant.httpx.Client") as mock:
        yield mock.return_value.__enter__.return_value


def test_fetch_history_success(mock_client):
    mock_client.get.return_value = response(json=HISTORY)

    data = home_assistant.fetch_history(
        ["light.kitchen", "scene.movie_night"],
        days=1,
        base_url="http://ha.local/",
        token="test-token",
    )

    assert data == HISTORY
    url = mock_client.get.call_args.args[0]
    assert url.startswith("http://ha.local/api/history/period/")
    kwargs = mock_client.get.call_args.kwargs
    assert kwargs["params"]["filter_entity_id"] == "light.kitchen,scene.movie_night"
    assert kwargs["headers"]["Authorization"] == "Bearer test-token"


def test_parse_history():
    entries = home_assistant.parse_history(HISTORY)

    assert [(e.device_id, e.action) for e in entries] == [
        ("light.kitchen", ActionKind.TURNED_ON),
        ("light.kitchen", ActionKind.BRIGHTNESS_CHANGED),
        ("light.kitchen", ActionKind.TURNED_OFF),
        ("scene.movie_night", ActionKind.SCENE_ACTIVATED),
    ]
    assert entries[0].device_name == "Kitchen Light"
    assert entries[0].timestamp == local("2026-01-29T07:00:00+00:00")
    assert entries[1].value == ActionValue.of(200)
    # Attribute-only changes keep last_changed, so last_updated is the action time
    assert entries[1].timestamp == local("2026-01-29T07:05:00+00:00")
    assert entries[3].timestamp == local("2026-01-29T21:00:00+00:00")


def test_fetch_history_network_error(mock_client):
    mock_client.get.side_effect = httpx.ConnectError("Network error")

    with pytest.raises(home_assistant.HomeAssistantError, match="Network error"):
        home_assistant.fetch_history(["light.kitchen"], token="test-token")


def test_fetch_history_timeout(mock_client):
    mock_client.get.side_effect = httpx.ReadTimeout("timed out")

    with pytest.raises(home_assistant.HomeAssistantError, match="timed out fetching 30 days"):
        home_assistant.fetch_history(["light.kitchen"], token="test-token")


def test_fetch_history_http_error(mock_client):
    mock_client.get.return_value = response(404)

    with pytest.raises(home_assistant.HomeAssistantError, match="404"):
        home_assistant.fetch_history(["light.kitchen"], token="test-token")


def test_fetch_history_requires_token(monkeypatch):
    monkeypatch.delenv("HA_TOKEN", raising=False)

    with pytest.raises(home_assistant.HomeAssistantError, match="HA_TOKEN"):
        home_assistant.fetch_history(["light.kitchen"])


def test_fetch_history_requires_entities():
    with pytest.raises(home_assistant.HomeAssistantError, match="No entities"):
        home_assistant.fetch_history([], token="test-token")


def test_import_ha_usage(mock_client):
    mock_client.get.return_value = response(json=HISTORY)
    engine = SuggestionEngine(clock=FixedClock(datetime(2026, 1, 30, 12, 0)))

    result = home_assistant.import_ha_usage(
        engine, ["light.kitchen", "scene.movie_night"], token="test-token"
    )

    assert result == {"imported": 4, "skipped": 0}
    assert len(engine.log) == 4
