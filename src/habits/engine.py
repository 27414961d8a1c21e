"""Usage-pattern mining and scene suggestion service.

The engine owns four pieces of state: the usage log, the pattern table, the
dismissed-suggestion set and the settings. Every mutating call runs under one
lock so an ingest (append, prune, aggregate, regenerate, persist) is never
interleaved with another mutation.
"""

import logging
import threading
from typing import Iterable

from .analysis.patterns import PatternTable
from .analysis.strategies import generate_suggestions
from .clock import Clock, SystemClock
from .config import EngineConfig
from .db import BlobStore, MemoryBlobStore
from .models import ActionKind, ActionValue, SceneSuggestion, Settings, UsageLogEntry
from .persistence import (
    DISMISSED_KEY,
    LOGS_KEY,
    PATTERNS_KEY,
    SETTINGS_KEY,
    DecodeError,
    LoadReport,
    decode_dismissed,
    decode_logs,
    decode_patterns,
    decode_settings,
    encode_dismissed,
    encode_logs,
    encode_patterns,
    encode_settings,
)
from .usage_log import UsageLog

_LOGGER = logging.getLogger(__name__)

LEARNING_TARGET_LOGS = 50
TOP_SUGGESTIONS = 5


class SuggestionEngine:
    """Learns device habits from usage events and proposes scenes.

    Args:
        store: Blob store for settings, patterns, logs and dismissed ids
        clock: Time source used to stamp events and apply retention
        config: Tunables; settings from the store override its defaults on load()
    """

    def __init__(
        self,
        store: BlobStore | None = None,
        clock: Clock | None = None,
        config: EngineConfig | None = None,
    ):
        self.config = config or EngineConfig()
        self.store = store if store is not None else MemoryBlobStore()
        self.clock = clock or SystemClock()

        self.settings = self._default_settings()
        self.log = UsageLog(self.config.retention_days)
        self.patterns = PatternTable()
        self.dismissed: set[str] = set()
        self._suggestions: list[SceneSuggestion] = []
        self._lock = threading.RLock()

    def _default_settings(self) -> Settings:
        return Settings(
            is_learning=self.config.learning_enabled,
            minimum_confidence=self.config.minimum_confidence,
        )

    # Ingestion

    def ingest(
        self,
        device_id: str,
        device_name: str | None,
        action: ActionKind,
        value: ActionValue | bool | int | float | str | None = None,
    ) -> UsageLogEntry | None:
        """Record a device action at the current time.

        Ignored while learning is disabled. Returns the stored entry.
        """
        with self._lock:
            if not self.settings.is_learning:
                _LOGGER.debug(f"Learning disabled, ignoring {action.value} on {device_id}")
                return None

            if value is not None and not isinstance(value, ActionValue):
                value = ActionValue.of(value)

            now = self.clock.now()
            entry = UsageLogEntry(
                device_id=device_id,
                device_name=device_name or "",
                timestamp=now,
                action=action,
                value=value,
            )
            self.log.append(entry)
            self.patterns.apply(entry)
            self._apply_retention(now)
            self._regenerate()
            self._persist(SETTINGS_KEY, PATTERNS_KEY, LOGS_KEY, DISMISSED_KEY)

            _LOGGER.debug(f"Logged {action.value} on {device_id} at {now.isoformat()}")
            return entry

    log_usage = ingest

    def backfill(self, entries: Iterable[UsageLogEntry]) -> int:
        """Apply historical entries with their own timestamps.

        Entries are applied oldest first; retention, regeneration and
        persistence run once at the end. Returns the number applied.
        """
        with self._lock:
            if not self.settings.is_learning:
                _LOGGER.info("Learning disabled, skipping backfill")
                return 0

            applied = 0
            for entry in sorted(entries, key=lambda e: e.timestamp):
                self.log.append(entry)
                self.patterns.apply(entry)
                applied += 1

            if applied:
                self._apply_retention(self.clock.now())
                self._regenerate()
                self._persist(SETTINGS_KEY, PATTERNS_KEY, LOGS_KEY, DISMISSED_KEY)

            _LOGGER.info(f"Backfilled {applied} usage entries")
            return applied

    def _apply_retention(self, now) -> None:
        removed = self.log.prune(now)
        if removed:
            _LOGGER.debug(f"Pruned {removed} usage entries older than {self.config.retention_days} days")

        if self.config.decay_idle_days:
            decayed = self.patterns.decay(now, self.config.decay_idle_days)
            if decayed:
                _LOGGER.debug(f"Decayed {decayed} idle patterns")

    # Suggestions

    def generate(self) -> list[SceneSuggestion]:
        """Regenerate suggestions from the current patterns and logs."""
        with self._lock:
            self._regenerate()
            return self.suggestions

    def _regenerate(self) -> None:
        candidates = generate_suggestions(
            self.patterns,
            self.log,
            min_frequency=self.config.minimum_pattern_frequency,
            minimum_confidence=self.settings.minimum_confidence,
            dismissed=self.dismissed,
        )
        # Stable: ties keep strategy order
        self._suggestions = sorted(candidates, key=lambda s: s.confidence, reverse=True)
        _LOGGER.debug(f"Generated {len(self._suggestions)} suggestions")

    @property
    def suggestions(self) -> list[SceneSuggestion]:
        return list(self._suggestions)

    @property
    def top_suggestions(self) -> list[SceneSuggestion]:
        return self._suggestions[:TOP_SUGGESTIONS]

    @property
    def has_suggestions(self) -> bool:
        return bool(self._suggestions)

    def get_suggestion(self, suggestion_id: str) -> SceneSuggestion | None:
        for suggestion in self._suggestions:
            if suggestion.id == suggestion_id:
                return suggestion
        return None

    @property
    def learning_progress(self) -> float:
        return min(len(self.log) / LEARNING_TARGET_LOGS, 1.0)

    # Lifecycle

    def dismiss(self, suggestion_id: str) -> SceneSuggestion | None:
        """Hide a suggestion from now on. Returns it if it was visible."""
        with self._lock:
            suggestion = self.get_suggestion(suggestion_id)
            self.dismissed.add(suggestion_id)
            self._suggestions = [s for s in self._suggestions if s.id != suggestion_id]
            self._persist(DISMISSED_KEY)
            _LOGGER.info(f"Dismissed suggestion {suggestion_id}")
            return suggestion

    def accept(self, suggestion_id: str) -> SceneSuggestion | None:
        """Accept a suggestion.

        Turning it into an automation is up to the caller; here accepting
        removes it the same way dismissing does.
        """
        return self.dismiss(suggestion_id)

    def clear_all(self) -> int:
        """Dismiss every visible suggestion. Returns how many were cleared."""
        with self._lock:
            cleared = len(self._suggestions)
            self.dismissed.update(s.id for s in self._suggestions)
            self._suggestions = []
            self._persist(DISMISSED_KEY)
            return cleared

    # Settings

    @property
    def is_learning(self) -> bool:
        return self.settings.is_learning

    def set_learning(self, enabled: bool) -> None:
        with self._lock:
            self.settings.is_learning = enabled
            self._persist(SETTINGS_KEY)

    @property
    def minimum_confidence(self) -> float:
        return self.settings.minimum_confidence

    def set_minimum_confidence(self, value: float) -> None:
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"Minimum confidence must be between 0 and 1, got {value}")
        with self._lock:
            self.settings.minimum_confidence = value
            self._persist(SETTINGS_KEY)
            self._regenerate()

    def reset(self) -> None:
        """Forget all learned usage, patterns and dismissals (settings are kept)."""
        with self._lock:
            self.log.clear()
            self.patterns.clear()
            self.dismissed.clear()
            self._suggestions = []
            self._persist(PATTERNS_KEY, LOGS_KEY, DISMISSED_KEY)
            _LOGGER.info("Engine state reset")

    # Persistence

    def load(self) -> LoadReport:
        """Load state from the store, then regenerate suggestions.

        Missing blobs leave defaults in place. Blobs that fail to load or
        decode reset their collection to defaults and are reported.
        """
        with self._lock:
            report = LoadReport()

            settings = self._load_blob(SETTINGS_KEY, decode_settings, report)
            self.settings = settings if settings is not None else self._default_settings()

            patterns = self._load_blob(PATTERNS_KEY, decode_patterns, report)
            self.patterns.replace(patterns or [])

            logs = self._load_blob(LOGS_KEY, decode_logs, report)
            self.log.replace(logs or [])
            self.log.prune(self.clock.now())

            dismissed = self._load_blob(DISMISSED_KEY, decode_dismissed, report)
            self.dismissed = dismissed or set()

            self._regenerate()
            _LOGGER.debug(
                f"Loaded {len(self.patterns)} patterns, {len(self.log)} logs, "
                f"{len(self.dismissed)} dismissed ids"
            )
            return report

    def _load_blob(self, key: str, decode, report: LoadReport):
        try:
            blob = self.store.load(key)
        except Exception as e:
            _LOGGER.warning(f"Could not read {key} from store, using defaults: {e}", exc_info=True)
            report.failed[key] = str(e)
            return None

        if blob is None:
            report.missing.append(key)
            return None

        try:
            value = decode(blob)
        except DecodeError as e:
            _LOGGER.warning(f"Could not decode {key}, using defaults: {e}")
            report.failed[key] = str(e)
            return None

        report.loaded.append(key)
        return value

    def save(self) -> None:
        """Persist all four collections."""
        with self._lock:
            self._persist(SETTINGS_KEY, PATTERNS_KEY, LOGS_KEY, DISMISSED_KEY)

    def _persist(self, *keys: str) -> None:
        encoders = {
            SETTINGS_KEY: lambda: encode_settings(self.settings),
            PATTERNS_KEY: lambda: encode_patterns(self.patterns.patterns),
            LOGS_KEY: lambda: encode_logs(self.log.tail(self.config.persisted_logs)),
            DISMISSED_KEY: lambda: encode_dismissed(self.dismissed),
        }
        for key in keys:
            try:
                self.store.save(key, encoders[key]())
            except Exception:
                # Best effort: the in-memory state stays authoritative
                _LOGGER.exception(f"Failed to persist {key}")
