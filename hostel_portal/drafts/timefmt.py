"""Human-readable ages for draft notifications."""

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


def _unit(count: int, name: str, plural: bool) -> str:
    return f"{count} {name}{'s' if plural else ''} ago"


def format_relative_time(age_ms: int, strict_plurals: bool = False) -> str:
    """
    Render an age in milliseconds as "just now", "N minutes ago", etc.

    Counts are floored. By default the plural suffix follows the elapsed
    minute count, which is how the web client has always rendered it
    (3,600,000 ms -> "1 hours ago"). ``strict_plurals`` pluralises by the
    displayed count instead ("1 hour ago").
    """
    age_ms = max(int(age_ms), 0)
    minutes = age_ms // MINUTE_MS
    hours = age_ms // HOUR_MS
    days = age_ms // DAY_MS

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return _unit(minutes, "minute", minutes > 1)
    if hours < 24:
        return _unit(hours, "hour", hours > 1 if strict_plurals else minutes > 1)
    return _unit(days, "day", days > 1 if strict_plurals else minutes > 1)
