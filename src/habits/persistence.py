"""JSON encoding of engine state for the blob store.

Each collection lives under its own key so a corrupt blob only resets that
collection.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime

from .models import ActionKind, ActionValue, Settings, UsageLogEntry, UsagePattern

STORAGE_KEY = "scene_suggestions"
SETTINGS_KEY = STORAGE_KEY
PATTERNS_KEY = f"{STORAGE_KEY}_patterns"
LOGS_KEY = f"{STORAGE_KEY}_logs"
DISMISSED_KEY = f"{STORAGE_KEY}_dismissed"

ALL_KEYS = (SETTINGS_KEY, PATTERNS_KEY, LOGS_KEY, DISMISSED_KEY)


class DecodeError(ValueError):
    """A stored blob could not be turned back into engine state."""


@dataclass
class LoadReport:
    """Outcome of loading engine state. Failed keys were reset to defaults."""

    loaded: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def _dumps(data) -> bytes:
    return json.dumps(data, separators=(",", ":")).encode("utf-8")


def _loads(blob: bytes):
    try:
        return json.loads(blob.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(f"Invalid JSON: {e}") from e


def encode_settings(settings: Settings) -> bytes:
    return _dumps(
        {
            "isLearning": settings.is_learning,
            "minimumConfidence": settings.minimum_confidence,
        }
    )


def decode_settings(blob: bytes) -> Settings:
    data = _loads(blob)
    if not isinstance(data, dict):
        raise DecodeError("Settings blob is not an object")

    defaults = Settings()
    is_learning = data.get("isLearning", defaults.is_learning)
    minimum_confidence = data.get("minimumConfidence", defaults.minimum_confidence)
    # Individual fields of the wrong type or out of range fall back to their defaults
    if not isinstance(is_learning, bool):
        is_learning = defaults.is_learning
    if isinstance(minimum_confidence, bool) or not isinstance(minimum_confidence, (int, float)):
        minimum_confidence = defaults.minimum_confidence
    elif not 0.0 <= minimum_confidence <= 1.0:
        minimum_confidence = defaults.minimum_confidence
    return Settings(is_learning=is_learning, minimum_confidence=float(minimum_confidence))


def encode_patterns(patterns: list[UsagePattern]) -> bytes:
    return _dumps(
        [
            {
                "deviceId": p.device_id,
                "deviceName": p.device_name,
                "dayOfWeek": p.weekday,
                "hour": p.hour,
                "action": p.action.value,
                "frequency": p.frequency,
                "lastSeen": p.last_seen.isoformat() if p.last_seen else None,
            }
            for p in patterns
        ]
    )


def decode_patterns(blob: bytes) -> list[UsagePattern]:
    data = _loads(blob)
    if not isinstance(data, list):
        raise DecodeError("Patterns blob is not a list")

    try:
        return [
            UsagePattern(
                device_id=str(row["deviceId"]),
                device_name=row.get("deviceName") or "",
                weekday=int(row["dayOfWeek"]),
                hour=int(row["hour"]),
                action=ActionKind(row["action"]),
                frequency=int(row["frequency"]),
                last_seen=datetime.fromisoformat(row["lastSeen"]) if row.get("lastSeen") else None,
            )
            for row in data
        ]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise DecodeError(f"Invalid pattern record: {e}") from e


def encode_logs(entries: list[UsageLogEntry]) -> bytes:
    return _dumps(
        [
            {
                "id": e.id,
                "deviceId": e.device_id,
                "deviceName": e.device_name,
                "timestamp": e.timestamp.isoformat(),
                "action": e.action.value,
                "value": e.value.to_dict() if e.value else None,
            }
            for e in entries
        ]
    )


def decode_logs(blob: bytes) -> list[UsageLogEntry]:
    data = _loads(blob)
    if not isinstance(data, list):
        raise DecodeError("Logs blob is not a list")

    try:
        return [
            UsageLogEntry(
                id=str(row["id"]),
                device_id=str(row["deviceId"]),
                device_name=row.get("deviceName") or "",
                timestamp=datetime.fromisoformat(row["timestamp"]),
                action=ActionKind(row["action"]),
                value=ActionValue.from_dict(row["value"]) if row.get("value") else None,
            )
            for row in data
        ]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise DecodeError(f"Invalid log record: {e}") from e


def encode_dismissed(ids: set[str]) -> bytes:
    return _dumps(sorted(ids))


def decode_dismissed(blob: bytes) -> set[str]:
    data = _loads(blob)
    if not isinstance(data, list) or not all(isinstance(i, str) for i in data):
        raise DecodeError("Dismissed blob is not a list of ids")
    return set(data)
