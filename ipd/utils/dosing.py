# ipd/utils/dosing.py
"""
Helpers that interpret free-text frequency / duration strings
("twice daily", "BID", "5 days", "hospital stay").
"""
import re

HOSPITAL_STAY_DAYS = 7

_DAILY_DOSE_PATTERNS: list[tuple[tuple[str, ...], int]] = [
    (("four", "qid", "qds"), 4),
    (("thrice", "three", "tid", "tds"), 3),
    (("twice", "two", "bid", "bd"), 2),
]

# Scheduled administration times per number of daily doses.
_SLOTS = {
    1: ["09:00"],
    2: ["09:00", "21:00"],
    3: ["08:00", "14:00", "20:00"],
    4: ["06:00", "12:00", "18:00", "22:00"],
}

_AS_NEEDED = ("sos", "prn", "as needed", "when required")
_NIGHT = ("night", "bedtime", "hs")


def _words(text: str) -> set[str]:
    return set(re.findall(r"[a-z]+", text.lower()))


def daily_doses(frequency: str | None) -> int:
    """
    Doses per day: twice/bid 2, thrice/tid 3, four/qid 4, anything else 1.
    """
    if not frequency:
        return 1
    words = _words(frequency)
    for keys, doses in _DAILY_DOSE_PATTERNS:
        if words.intersection(keys):
            return doses
    return 1


def duration_days(duration: str | None) -> int | None:
    """
    Parse a duration: 'N days' -> N, 'hospital stay' or any week -> 7.
    Returns None when the text gives no number of days.
    """
    if not duration:
        return None
    text = duration.lower()
    if "hospital stay" in text:
        return HOSPITAL_STAY_DAYS
    match = re.search(r"(\d+)\s*day", text)
    if match:
        return int(match.group(1))
    if "week" in text:
        return 7
    return None


def calculate_quantity(frequency: str | None, duration: str | None) -> int:
    """
    Units to dispense: daily doses x days (1 day when the duration is unknown).
    """
    return daily_doses(frequency) * (duration_days(duration) or 1)


def schedule_slots(frequency: str | None) -> list[str]:
    """
    HH:MM administration times for one day. As-needed medication has no
    scheduled slots; 'every N hours' spreads doses from 06:00.
    """
    if not frequency:
        return list(_SLOTS[1])
    text = frequency.lower()
    if any(key in text for key in _AS_NEEDED):
        return []

    match = re.search(r"every\s+(\d+)\s*h", text)
    if match:
        interval = int(match.group(1))
        if 0 < interval <= 24:
            return [f"{(6 + i * interval) % 24:02d}:00" for i in range(24 // interval)]

    doses = daily_doses(frequency)
    if doses == 1 and _words(text).intersection(_NIGHT):
        return ["21:00"]
    return list(_SLOTS[doses])
