"""Civil date/time text -> absolute instant under a fixed UTC offset.

Supported date shapes (time token anywhere in date or time text):
    04.11.2026   04.11.26   04.11   2026-11-04
    4 ноября   4 ноября 2026   4 ноя   4 ноября, пт   пт, 4 ноября

The instant is built as if the civil components were UTC, then the fixed
offset is subtracted. No timezone database, no DST.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

DEFAULT_UTC_OFFSET_HOURS = 3

_MONTH_FORMS = {
    1: ["января", "январь", "янв"],
    2: ["февраля", "февраль", "фев", "февр"],
    3: ["марта", "март", "мар"],
    4: ["апреля", "апрель", "апр"],
    5: ["мая", "май"],
    6: ["июня", "июнь", "июн"],
    7: ["июля", "июль", "июл"],
    8: ["августа", "август", "авг"],
    9: ["сентября", "сентябрь", "сен", "сент"],
    10: ["октября", "октябрь", "окт"],
    11: ["ноября", "ноябрь", "ноя", "нояб"],
    12: ["декабря", "декабрь", "дек"],
}
MONTHS = {form: month for month, forms in _MONTH_FORMS.items() for form in forms}

WEEKDAYS = {
    "пн", "вт", "ср", "чт", "пт", "сб", "вс",
    "понедельник", "вторник", "среда", "четверг", "пятница", "суббота", "воскресенье",
}

TIME_PATTERN = re.compile(r"(?:^|\s)(?:в|at)?\s*(\d{1,2}):(\d{2})(?::\d{2})?(?=\s|$|,)")
DMY_PATTERN = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4}|\d{2})$")
DM_PATTERN = re.compile(r"^(\d{1,2})\.(\d{1,2})$")
ISO_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")


def fixed_offset(offset_hours: int) -> timezone:
    return timezone(timedelta(hours=offset_hours))


def infer_year(month: int, now: datetime, offset_hours: int) -> int:
    """Current year unless the month is already behind us, then next year."""
    local_now = now.astimezone(fixed_offset(offset_hours))
    return local_now.year if month >= local_now.month else local_now.year + 1


def to_instant(
    year: int, month: int, day: int, hour: int, minute: int, offset_hours: int
) -> Optional[datetime]:
    """Civil components -> aware UTC datetime, or None if out of range."""
    try:
        as_utc = datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
    except ValueError:
        return None
    return as_utc - timedelta(hours=offset_hours)


def split_time(text: str) -> tuple[str, Optional[tuple[int, int]]]:
    """Remove the last time token from text; return (rest, (hour, minute))."""
    matches = list(TIME_PATTERN.finditer(text))
    if not matches:
        return text, None
    match = matches[-1]
    rest = (text[: match.start()] + " " + text[match.end():]).strip()
    return rest, (int(match.group(1)), int(match.group(2)))


def parse_date_tokens(
    date_part: str, now: datetime, offset_hours: int
) -> Optional[tuple[int, int, int]]:
    """Parse the date-only part into (year, month, day)."""
    tokens = [t.strip(".") for t in re.split(r"[\s,]+", date_part) if t.strip(".")]
    tokens = [t for t in tokens if t not in WEEKDAYS and t not in ("г", "года")]

    if len(tokens) == 1:
        token = tokens[0]
        if match := DMY_PATTERN.match(token):
            day, month, year = (int(g) for g in match.groups())
            if year < 100:
                year += 2000
            return year, month, day
        if match := DM_PATTERN.match(token):
            day, month = int(match.group(1)), int(match.group(2))
            return infer_year(month, now, offset_hours), month, day
        if match := ISO_PATTERN.match(token):
            year, month, day = (int(g) for g in match.groups())
            return year, month, day
        return None

    if len(tokens) in (2, 3) and tokens[0].isdigit() and tokens[1] in MONTHS:
        day = int(tokens[0])
        month = MONTHS[tokens[1]]
        if len(tokens) == 3:
            if not (tokens[2].isdigit() and len(tokens[2]) == 4):
                return None
            year = int(tokens[2])
        else:
            year = infer_year(month, now, offset_hours)
        return year, month, day

    return None


def parse_civil_datetime(
    date_text: str,
    time_text: Optional[str] = None,
    now: Optional[datetime] = None,
    offset_hours: int = DEFAULT_UTC_OFFSET_HOURS,
) -> Optional[datetime]:
    """Resolve date + time text to an absolute UTC instant.

    Returns None when no supported format matches, the time token is
    missing, or any component is out of range.
    """
    now = now or datetime.now(timezone.utc)
    text = re.sub(r"\s+", " ", f"{date_text or ''} {time_text or ''}").strip().lower()
    text = re.sub(r"(\d{4}-\d{1,2}-\d{1,2})t", r"\1 ", text)

    date_part, hm = split_time(text)
    if hm is None:
        return None
    hour, minute = hm
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None

    ymd = parse_date_tokens(date_part, now, offset_hours)
    if ymd is None:
        return None
    year, month, day = ymd
    return to_instant(year, month, day, hour, minute, offset_hours)


def to_local(instant: datetime, offset_hours: int = DEFAULT_UTC_OFFSET_HOURS) -> datetime:
    """Absolute instant -> civil time in the fixed offset."""
    return instant.astimezone(fixed_offset(offset_hours))


def format_day_month_time(instant: datetime, offset_hours: int = DEFAULT_UTC_OFFSET_HOURS) -> str:
    return to_local(instant, offset_hours).strftime("%d.%m %H:%M")
