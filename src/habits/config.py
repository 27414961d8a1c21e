"""Engine configuration from YAML and environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

from .analysis.patterns import MIN_PATTERN_FREQUENCY
from .usage_log import PERSISTED_LOG_LIMIT, RETENTION_DAYS

# Load environment variables from .env file
load_dotenv()

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "habits.yaml"
DEFAULT_HA_URL = "http://homeassistant.local:8123"


@dataclass
class HomeAssistantConfig:
    base_url: str = DEFAULT_HA_URL
    entities: list[str] = field(default_factory=list)


@dataclass
class EngineConfig:
    """Tunables for learning, retention and the optional decay policy."""

    learning_enabled: bool = True
    minimum_confidence: float = 0.6
    minimum_pattern_frequency: int = MIN_PATTERN_FREQUENCY
    retention_days: int = RETENTION_DAYS
    persisted_logs: int = PERSISTED_LOG_LIMIT
    decay_idle_days: int | None = None
    home_assistant: HomeAssistantConfig = field(default_factory=HomeAssistantConfig)

    def __post_init__(self):
        if not isinstance(self.learning_enabled, bool):
            raise ValueError(f"learning enabled must be true or false, got {self.learning_enabled!r}")
        if not 0.0 <= self.minimum_confidence <= 1.0:
            raise ValueError(f"minimum_confidence must be between 0 and 1, got {self.minimum_confidence}")
        if self.minimum_pattern_frequency < 1:
            raise ValueError("minimum_pattern_frequency must be at least 1")
        if self.retention_days < 1:
            raise ValueError("retention_days must be at least 1")
        if self.persisted_logs < 0:
            raise ValueError("persisted_logs cannot be negative")
        if self.decay_idle_days is not None and self.decay_idle_days < 1:
            raise ValueError("decay idle_days must be at least 1 when set")


def get_config_path() -> Path:
    return Path(os.environ.get("HABITS_CONFIG") or DEFAULT_CONFIG_PATH)


def parse_config(data: dict | None) -> EngineConfig:
    """Build an EngineConfig from the parsed YAML document."""
    data = data or {}
    learning = data.get("learning") or {}
    retention = data.get("retention") or {}
    decay = data.get("decay") or {}
    ha = data.get("home_assistant") or {}

    defaults = EngineConfig()
    return EngineConfig(
        learning_enabled=learning.get("enabled", defaults.learning_enabled),
        minimum_confidence=float(learning.get("minimum_confidence", defaults.minimum_confidence)),
        minimum_pattern_frequency=int(
            learning.get("minimum_pattern_frequency", defaults.minimum_pattern_frequency)
        ),
        retention_days=int(retention.get("days", defaults.retention_days)),
        persisted_logs=int(retention.get("persisted_logs", defaults.persisted_logs)),
        decay_idle_days=int(decay["idle_days"]) if decay.get("idle_days") else None,
        home_assistant=HomeAssistantConfig(
            base_url=os.environ.get("HA_URL") or ha.get("base_url", DEFAULT_HA_URL),
            entities=list(ha.get("entities") or []),
        ),
    )


def load_config(config_path: Path | None = None) -> EngineConfig:
    """Load engine configuration. A missing file yields the defaults."""
    path = config_path or get_config_path()
    if not path.exists():
        return parse_config(None)

    with open(path) as f:
        data = yaml.safe_load(f)

    if data is not None and not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return parse_config(data)
