"""Home Assistant usage collector.

Fetches state history from Home Assistant's REST API and turns state
changes of lights, switches and scenes into usage entries.
"""

import os
from datetime import datetime, timedelta
from typing import Any

import httpx

from ..config import DEFAULT_HA_URL
from ..engine import SuggestionEngine
from ..models import ActionKind, ActionValue, UsageLogEntry

IGNORED_STATES = ("unavailable", "unknown", None)


class HomeAssistantError(Exception):
    """Base exception for Home Assistant collector errors."""
    pass


def get_token() -> str:
    """Get the HA token from environment variables."""
    token = os.environ.get("HA_TOKEN")
    if not token:
        raise HomeAssistantError("HA_TOKEN environment variable not set")
    return token


def fetch_history(
    entity_ids: list[str],
    days: int = 30,
    base_url: str = DEFAULT_HA_URL,
    token: str | None = None,
) -> list[list[dict[str, Any]]]:
    """Fetch raw state history for the given entities.

    Returns Home Assistant's list of lists (one list of states per entity).
    """
    if not entity_ids:
        raise HomeAssistantError("No entities configured for Home Assistant import")
    if token is None:
        token = get_token()

    end_time = datetime.now()
    start_time = end_time - timedelta(days=days)
    url = f"{base_url.rstrip('/')}/api/history/period/{start_time.isoformat()}"
    params = {
        "filter_entity_id": ",".join(entity_ids),
        "end_time": end_time.isoformat(),
        "significant_changes_only": "false",
    }
    headers = {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
    }

    try:
        with httpx.Client(timeout=60.0) as client:
            response = client.get(url, params=params, headers=headers)
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPStatusError as e:
        raise HomeAssistantError(
            f"HTTP error from Home Assistant: {e.response.status_code} - {e.response.reason_phrase}"
        ) from e
    except httpx.TimeoutException as e:
        raise HomeAssistantError(
            f"Request to Home Assistant timed out fetching {days} days of history, try fewer days"
        ) from e
    except httpx.RequestError as e:
        raise HomeAssistantError(f"Network error connecting to Home Assistant: {e}") from e

    if not isinstance(data, list):
        return []
    return data


def _local_timestamp(ts_str: str) -> datetime:
    timestamp = datetime.fromisoformat(ts_str)
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone().replace(tzinfo=None)
    return timestamp


def _classify(
    entity_id: str, state: str, previous: dict, attributes: dict
) -> tuple[ActionKind, ActionValue | None] | None:
    """Map a state change to an action, or None if it is not a user action."""
    if entity_id.startswith("scene."):
        # A scene's state is the time it was last activated
        return ActionKind.SCENE_ACTIVATED, None

    previous_state = previous.get("state")
    if state == "on" and previous_state != "on":
        return ActionKind.TURNED_ON, None
    if state == "off" and previous_state != "off":
        return ActionKind.TURNED_OFF, None

    if state == "on":
        previous_attributes = previous.get("attributes") or {}
        brightness = attributes.get("brightness")
        if brightness is not None and brightness != previous_attributes.get("brightness"):
            return ActionKind.BRIGHTNESS_CHANGED, ActionValue.of(brightness)
        for color_key in ("rgb_color", "hs_color", "color_temp_kelvin", "color_temp"):
            color = attributes.get(color_key)
            if color is not None and color != previous_attributes.get(color_key):
                return ActionKind.COLOR_CHANGED, ActionValue.of(str(color))

    return None


def parse_history(data: list[list[dict[str, Any]]]) -> list[UsageLogEntry]:
    """Convert Home Assistant history into usage entries."""
    entries = []
    for entity_states in data:
        previous = None
        for state in entity_states:
            try:
                entity_id = state.get("entity_id")
                state_val = state.get("state")
                if not entity_id or state_val in IGNORED_STATES:
                    continue

                ts_str = state.get("last_updated") or state.get("last_changed")
                if not ts_str:
                    continue

                if previous is None:
                    # The first state is the baseline at the start of the period
                    previous = state
                    continue

                attributes = state.get("attributes") or {}
                classified = _classify(entity_id, state_val, previous, attributes)
                previous = state
                if classified is None:
                    continue

                action, value = classified
                entries.append(
                    UsageLogEntry(
                        device_id=entity_id,
                        device_name=attributes.get("friendly_name") or entity_id,
                        timestamp=_local_timestamp(ts_str),
                        action=action,
                        value=value,
                    )
                )
            except (ValueError, TypeError):
                # Skip invalid states
                continue

    return entries


def import_ha_usage(
    engine: SuggestionEngine,
    entity_ids: list[str],
    days: int = 30,
    base_url: str = DEFAULT_HA_URL,
    token: str | None = None,
) -> dict:
    """Fetch history from HA and backfill the engine.

    Returns dict with 'imported' and 'skipped' counts.
    """
    data = fetch_history(entity_ids, days=days, base_url=base_url, token=token)
    entries = parse_history(data)
    imported = engine.backfill(entries)
    return {"imported": imported, "skipped": len(entries) - imported}
