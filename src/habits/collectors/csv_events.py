"""CSV usage-event importer.

CSV format: timestamp, device_id, device_name, action, value
(value optional; action as "turned_on" or "Turned On").
"""

import csv
from datetime import datetime
from pathlib import Path

from ..engine import SuggestionEngine
from ..models import ActionKind, ActionValue, UsageLogEntry

REQUIRED_COLUMNS = {"timestamp", "device_id", "action"}


def parse_csv(csv_path: Path) -> tuple[list[UsageLogEntry], int]:
    """Parse a usage CSV. Returns (entries, skipped_rows)."""
    entries = []
    skipped = 0
    with open(csv_path, newline="") as f:
        reader = csv.DictReader(f)
        missing = REQUIRED_COLUMNS - set(reader.fieldnames or [])
        if missing:
            raise ValueError(f"{csv_path}: missing column(s) {', '.join(sorted(missing))}")

        for row in reader:
            try:
                timestamp = datetime.fromisoformat(row["timestamp"].strip())
                if timestamp.tzinfo is not None:
                    # Buckets use local wall-clock time
                    timestamp = timestamp.astimezone().replace(tzinfo=None)
                raw_value = (row.get("value") or "").strip()
                entries.append(
                    UsageLogEntry(
                        device_id=row["device_id"].strip(),
                        device_name=(row.get("device_name") or "").strip(),
                        timestamp=timestamp,
                        action=ActionKind.parse(row["action"]),
                        value=ActionValue.parse(raw_value) if raw_value else None,
                    )
                )
            except (ValueError, AttributeError):
                # Malformed timestamp or unknown action
                skipped += 1
    return entries, skipped


def import_from_csv(csv_path: Path, engine: SuggestionEngine) -> dict:
    """Backfill an engine from a usage CSV.

    Returns dict with 'imported' and 'skipped' counts.
    """
    entries, skipped = parse_csv(csv_path)
    imported = engine.backfill(entries)
    return {"imported": imported, "skipped": skipped + len(entries) - imported}
