"""Summaries of learned habits and current suggestions."""

from ..clock import weekday_number
from ..engine import SuggestionEngine
from .strategies import day_name, format_hour


def get_summary(engine: SuggestionEngine, top_patterns: int = 5) -> dict:
    """Snapshot of the engine state as plain data."""
    entries = engine.log.entries
    patterns = sorted(engine.patterns, key=lambda p: p.frequency, reverse=True)
    strong = engine.patterns.strong(engine.config.minimum_pattern_frequency)

    devices = {}
    for entry in entries:
        devices.setdefault(entry.device_id, entry.device_name)

    busiest_day = None
    if entries:
        counts: dict[int, int] = {}
        for entry in entries:
            weekday = weekday_number(entry.timestamp)
            counts[weekday] = counts.get(weekday, 0) + 1
        busiest_day = day_name(max(counts, key=counts.get))

    return {
        "learning": engine.is_learning,
        "learning_progress_percent": round(engine.learning_progress * 100, 1),
        "minimum_confidence": engine.minimum_confidence,
        "log_count": len(entries),
        "earliest_log": min(e.timestamp for e in entries).isoformat() if entries else None,
        "latest_log": max(e.timestamp for e in entries).isoformat() if entries else None,
        "device_count": len(devices),
        "busiest_day": busiest_day,
        "pattern_count": len(engine.patterns),
        "strong_pattern_count": len(strong),
        "dismissed_count": len(engine.dismissed),
        "top_patterns": [
            {
                "device": p.device_name or p.device_id,
                "action": p.action.label,
                "slot": f"{day_name(p.weekday)} {format_hour(p.hour)}",
                "frequency": p.frequency,
            }
            for p in patterns[:top_patterns]
        ],
        "suggestions": [
            {
                "id": s.id,
                "kind": s.kind.value,
                "title": s.title,
                "confidence": round(s.confidence, 2),
            }
            for s in engine.suggestions
        ],
    }


def format_summary_text(data: dict) -> str:
    """Format a summary for terminal or LLM consumption."""
    lines = [
        "Home habits summary",
        "",
        f"Learning: {'on' if data['learning'] else 'off'} "
        f"({data['learning_progress_percent']}% of the initial learning period)",
        f"Usage logs: {data['log_count']} across {data['device_count']} device(s)",
    ]
    if data["earliest_log"]:
        lines.append(f"Range: {data['earliest_log']} → {data['latest_log']}")
    if data["busiest_day"]:
        lines.append(f"Busiest day: {data['busiest_day']}")
    lines.append(
        f"Patterns: {data['pattern_count']} ({data['strong_pattern_count']} strong)"
    )

    if data["top_patterns"]:
        lines.append("")
        lines.append("Top patterns:")
        for p in data["top_patterns"]:
            lines.append(f"  - {p['device']} {p['action']} on {p['slot']} ({p['frequency']}x)")

    lines.append("")
    if data["suggestions"]:
        lines.append(f"Suggestions (minimum confidence {data['minimum_confidence']:.0%}):")
        for s in data["suggestions"]:
            lines.append(f"  - [{s['id']}] {s['title']} ({s['confidence']:.0%})")
    else:
        lines.append("No suggestions yet")

    if data["dismissed_count"]:
        lines.append(f"Dismissed: {data['dismissed_count']}")

    return "\n".join(lines)
