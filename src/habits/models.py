"""Data models for usage logs, patterns and scene suggestions."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ActionKind(str, Enum):
    """What a device did."""

    TURNED_ON = "turned_on"
    TURNED_OFF = "turned_off"
    BRIGHTNESS_CHANGED = "brightness_changed"
    COLOR_CHANGED = "color_changed"
    SCENE_ACTIVATED = "scene_activated"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()

    @classmethod
    def parse(cls, text: str) -> "ActionKind":
        """Accept either the stored value ("turned_on") or the label ("Turned On")."""
        normalized = text.strip().lower().replace(" ", "_").replace("-", "_")
        return cls(normalized)


class ValueType(str, Enum):
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"


@dataclass(frozen=True)
class ActionValue:
    """A typed payload attached to an action (brightness level, colour name, ...)."""

    type: ValueType
    value: bool | int | float | str

    @classmethod
    def of(cls, raw: bool | int | float | str) -> "ActionValue":
        # bool is checked first since it is a subclass of int
        if isinstance(raw, bool):
            return cls(ValueType.BOOLEAN, raw)
        if isinstance(raw, int):
            return cls(ValueType.INTEGER, raw)
        if isinstance(raw, float):
            return cls(ValueType.FLOAT, raw)
        if isinstance(raw, str):
            return cls(ValueType.STRING, raw)
        raise TypeError(f"Unsupported action value: {raw!r}")

    @classmethod
    def parse(cls, text: str) -> "ActionValue":
        """Parse a command-line or CSV value, picking the narrowest type."""
        lowered = text.strip().lower()
        if lowered in ("true", "false"):
            return cls(ValueType.BOOLEAN, lowered == "true")
        try:
            return cls(ValueType.INTEGER, int(text))
        except ValueError:
            pass
        try:
            return cls(ValueType.FLOAT, float(text))
        except ValueError:
            return cls(ValueType.STRING, text)

    def to_dict(self) -> dict:
        return {"type": self.type.value, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict) -> "ActionValue":
        value_type = ValueType(data["type"])
        raw = data["value"]
        if value_type is ValueType.BOOLEAN:
            return cls(value_type, bool(raw))
        if value_type is ValueType.INTEGER:
            return cls(value_type, int(raw))
        if value_type is ValueType.FLOAT:
            return cls(value_type, float(raw))
        return cls(value_type, str(raw))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class UsageLogEntry:
    """A single observed device action."""

    device_id: str
    device_name: str
    timestamp: datetime
    action: ActionKind
    value: ActionValue | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(frozen=True, order=True)
class PatternKey:
    """Identity of a pattern bucket. Weekday runs Sunday = 1 through Saturday = 7."""

    device_id: str
    weekday: int
    hour: int
    action: ActionKind


@dataclass
class UsagePattern:
    """How often a device performed an action in a weekday/hour slot."""

    device_id: str
    device_name: str
    weekday: int
    hour: int
    action: ActionKind
    frequency: int = 1
    last_seen: datetime | None = None

    @property
    def key(self) -> PatternKey:
        return PatternKey(self.device_id, self.weekday, self.hour, self.action)


class TriggerCondition(str, Enum):
    TIME_OF_DAY = "time_of_day"
    ARRIVED_HOME = "arrived_home"
    LEFT_HOME = "left_home"
    MOTION_DETECTED = "motion_detected"
    NO_MOTION = "no_motion"
    SUNSET = "sunset"
    SUNRISE = "sunrise"


@dataclass(frozen=True)
class SuggestionTrigger:
    """When a suggested scene should run."""

    condition: TriggerCondition
    weekday: int | None = None
    hour: int | None = None


@dataclass(frozen=True)
class SuggestedAction:
    device_id: str
    device_name: str
    action: ActionKind
    value: ActionValue | None = None


class SuggestionKind(str, Enum):
    CO_OCCURRENCE = "co_occurrence"
    REGULAR_INTERVAL = "regular_interval"
    ROUTINE = "routine"


@dataclass
class SceneSuggestion:
    """A derived recommendation to create a scene or automation."""

    id: str
    kind: SuggestionKind
    title: str
    description: str
    confidence: float
    based_on: list[UsagePattern] = field(default_factory=list)
    actions: list[SuggestedAction] = field(default_factory=list)
    trigger: SuggestionTrigger | None = None


@dataclass
class Settings:
    """User-adjustable engine settings (persisted)."""

    is_learning: bool = True
    minimum_confidence: float = 0.6
