"""Recurrence rule interpretation for appointment series.

Rules arrive already normalized by the intent layer in an RRULE-like
`KEY=VALUE;KEY=VALUE` form, e.g. "FREQ=WEEKLY" or "RRULE:FREQ=WEEKLY;INTERVAL=2".
Only weekly and every-other-week cadences drive generation; anything else is
treated as a one-off appointment.
"""

import re


WEEKLY_INTERVAL_DAYS = 7

# Weekly multipliers the engine generates occurrences for
SUPPORTED_WEEKLY_MULTIPLIERS = {1, 2}


def parse_rule_parts(rule: str) -> dict[str, str]:
    """Split a normalized rule into upper-cased KEY -> VALUE parts.

    Args:
        rule: Rule string (e.g., "FREQ=WEEKLY;INTERVAL=2")

    Returns:
        Mapping of rule keys to values; malformed segments are ignored
    """
    body = rule.strip().upper()
    if body.startswith("RRULE:"):
        body = body[len("RRULE:") :]

    parts: dict[str, str] = {}
    for segment in body.split(";"):
        match = re.match(r"^\s*([A-Z]+)\s*=\s*([A-Z0-9,+-]+)\s*$", segment)
        if match:
            parts[match.group(1)] = match.group(2)
    return parts


def get_recurrence_interval_days(rule: str | None) -> int | None:
    """Translate a recurrence rule into a day interval.

    Args:
        rule: Normalized rule string or None

    Returns:
        7 for weekly, 14 for every other week, None when the rule does not recur
    """
    if not rule:
        return None

    parts = parse_rule_parts(rule)
    if parts.get("FREQ") != "WEEKLY":
        return None

    raw_interval = parts.get("INTERVAL", "1")
    if not raw_interval.isdigit():
        return None

    multiplier = int(raw_interval)
    if multiplier not in SUPPORTED_WEEKLY_MULTIPLIERS:
        return None

    return WEEKLY_INTERVAL_DAYS * multiplier


def rule_to_human(rule: str | None) -> str:
    """Convert a recurrence rule to human-readable text.

    Returns:
        "weekly", "every 2 weeks", or "does not repeat"
    """
    interval = get_recurrence_interval_days(rule)
    if interval is None:
        return "does not repeat"
    if interval == WEEKLY_INTERVAL_DAYS:
        return "weekly"
    return f"every {interval // WEEKLY_INTERVAL_DAYS} weeks"
