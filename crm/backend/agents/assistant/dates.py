"""
French natural-language dates.

Turns what people type in a chat ("demain 15h", "vendredi à 9h30",
"lundi prochain", "dans 3 jours", "12/03 14:00") into a naive wall-clock
datetime. Anything unrecognised gives None; callers decide how to report it.
"""

import re
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from crm.backend.core.utils import local_now

DEFAULT_TIMEZONE = "Europe/Paris"
DEFAULT_HOUR = 9

WEEKDAYS = ("lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche")

RELATIVE_DAYS = {
    "aujourd'hui": 0,
    "demain": 1,
    "après-demain": 2,
    "apres-demain": 2,
}

_TIME = r"(?:\s+(?:à\s*|a\s+)?(?P<hour>\d{1,2})(?:\s*[h:]\s*(?P<minute>\d{2})?)?)?"

_RELATIVE_RE = re.compile(
    r"^(?P<word>" + "|".join(re.escape(w) for w in (*RELATIVE_DAYS, *WEEKDAYS)) + r")"
    r"(?P<next>\s+prochain)?" + _TIME + r"$"
)
_OFFSET_RE = re.compile(r"^dans\s+(?P<count>\d{1,3})\s+(?P<unit>jours?|semaines?)" + _TIME + r"$")
_DAY_MONTH_RE = re.compile(
    r"^(?P<day>\d{1,2})/(?P<month>\d{1,2})(?:/(?P<year>\d{4}|\d{2}))?" + _TIME + r"$"
)
_ISO_SPACE_RE = re.compile(
    r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})\s+(?P<hour>\d{1,2}):(?P<minute>\d{2})$"
)


def _clock(match: re.Match) -> tuple[int, int]:
    hour = match.group("hour")
    minute = match.group("minute")
    return (int(hour) if hour else DEFAULT_HOUR, int(minute) if minute else 0)


def _at(day: datetime, hour: int, minute: int) -> datetime:
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


def parse_datetime(
    text: str,
    now: datetime | None = None,
    tz: str = DEFAULT_TIMEZONE,
) -> datetime | None:
    """
    Parse a French date expression.

    Recognised, in order:
        - aujourd'hui / demain / après-demain / a weekday name, optionally
          followed by "à" and a time (15, 15h, 15h30, 15:30); 09:00 when
          no time is given. A weekday always means the next one, never today;
          "lundi prochain" is the same as "lundi".
        - dans N jour(s) / semaine(s), with the same optional time
        - ISO 8601 (2026-03-12, 2026-03-12T14:00)
        - DD/MM, DD/MM/YY, DD/MM/YYYY with an optional time
        - YYYY-MM-DD HH:MM

    Args:
        text: User input
        now: Reference wall-clock time, defaults to the current time in ``tz``
        tz: Timezone used for ``now`` and for converting aware ISO input

    Returns:
        Naive wall-clock datetime, or None if nothing matched.
    """
    if not text:
        return None
    value = " ".join(text.strip().lower().replace("’", "'").split())
    now = now or local_now(tz)

    try:
        match = _RELATIVE_RE.match(value)
        if match:
            word = match.group("word")
            if word in RELATIVE_DAYS:
                if match.group("next"):
                    return None
                day = now + timedelta(days=RELATIVE_DAYS[word])
            else:
                days_until = WEEKDAYS.index(word) - now.weekday()
                if days_until <= 0:
                    days_until += 7
                day = now + timedelta(days=days_until)
            return _at(day, *_clock(match))

        match = _OFFSET_RE.match(value)
        if match:
            count = int(match.group("count"))
            if match.group("unit").startswith("semaine"):
                count *= 7
            return _at(now + timedelta(days=count), *_clock(match))

        try:
            parsed = datetime.fromisoformat(value.upper())
        except ValueError:
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is not None:
                parsed = parsed.astimezone(ZoneInfo(tz)).replace(tzinfo=None)
            return parsed

        match = _DAY_MONTH_RE.match(value)
        if match:
            year = match.group("year")
            if year is None:
                year_value = now.year
            elif len(year) == 2:
                year_value = 2000 + int(year)
            else:
                year_value = int(year)
            hour, minute = _clock(match)
            return datetime(year_value, int(match.group("month")), int(match.group("day")), hour, minute)

        match = _ISO_SPACE_RE.match(value)
        if match:
            return datetime(
                int(match.group("year")), int(match.group("month")), int(match.group("day")),
                int(match.group("hour")), int(match.group("minute")),
            )
    except ValueError:
        # 31/02, 25h...
        return None
    return None
