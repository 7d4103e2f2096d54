from __future__ import annotations

# Order matters: substring matching is first-match-wins, so the more specific
# phrases ("every other day", "twice daily") must precede the bare "day"/"daily".
DAILY_USAGE_RULES: tuple[tuple[tuple[str, ...], float], ...] = (
    (("every other day", "alternate day"), 0.5),
    (("once a week", "weekly"), 1 / 7),
    (("four times",), 4.0),
    (("three times",), 3.0),
    (("twice daily", "two times"), 2.0),
    (("once daily", "daily", "day"), 1.0),
)

DEFAULT_DAILY_USAGE = 1.0


def estimate_daily_usage(frequency: str) -> float:
    text = (frequency or "").lower()
    for phrases, doses in DAILY_USAGE_RULES:
        if any(phrase in text for phrase in phrases):
            return doses
    return DEFAULT_DAILY_USAGE
