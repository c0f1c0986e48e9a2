"""Turn free-text potluck dates into concrete event start and end instants.

Resolution tries, in order: the default slot when no text is given, a
natural-language parse with :mod:`dateparser`, a literal parse with
:mod:`dateutil`, and finally the default slot again. Parsed starts more than
a year away from "now" are rejected so that typos such as ``2042`` do not
produce absurd events.
"""

from __future__ import annotations

import datetime
import enum
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateparser.date import DateDataParser
from dateutil import parser as dateutil_parser

from .models import utcnow
from .storage import PotluckStorage

log = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_HOUR = 18
DEFAULT_DURATION = datetime.timedelta(hours=3)
DEFAULT_LEAD_TIME = datetime.timedelta(hours=2)
VALIDITY_WINDOW = datetime.timedelta(days=365)

DATE_EXAMPLES: list[str] = [
    "Saturday at 6pm",
    "next Friday at 7:30pm",
    "December 14th at 6pm",
    "tomorrow evening",
    "2024-12-14 18:00",
    "in 3 days at 5pm",
]

COMMON_TIMEZONES: list[tuple[str, str]] = [
    ("Eastern Time (EST/EDT)", "America/New_York"),
    ("Central Time (CST/CDT)", "America/Chicago"),
    ("Mountain Time (MST/MDT)", "America/Denver"),
    ("Pacific Time (PST/PDT)", "America/Los_Angeles"),
    ("Alaska Time (AKST/AKDT)", "America/Anchorage"),
    ("Hawaii Time (HST)", "Pacific/Honolulu"),
    ("Atlantic Time (AST/ADT)", "America/Halifax"),
    ("UTC", "UTC"),
]

TIMEZONE_ALIASES = {
    "est": "America/New_York",
    "edt": "America/New_York",
    "cst": "America/Chicago",
    "cdt": "America/Chicago",
    "mst": "America/Denver",
    "mdt": "America/Denver",
    "pst": "America/Los_Angeles",
    "pdt": "America/Los_Angeles",
    "gmt": "UTC",
    "utc": "UTC",
}

_PART_OF_DAY = [
    (re.compile(r"\btonight\b"), "today 8pm"),
    (re.compile(r"\bmorning\b"), "9am"),
    (re.compile(r"\bafternoon\b"), "3pm"),
    (re.compile(r"\bevening\b"), "6pm"),
    (re.compile(r"\bnight\b"), "8pm"),
    (re.compile(r"\bnoon\b"), "12pm"),
    (re.compile(r"\bmidnight\b"), "12am"),
]
_CONNECTORS = re.compile(r"\s+(?:at|@)\s+")
_RANGE = re.compile(r"^(?P<start>.+?)\s+(?:to|until|till)\s+(?P<end>.+)$")
_LITERAL = re.compile(r"^[\d\s/.,:+\-T]+(?:z|utc)?$", re.IGNORECASE)
_TIME = re.compile(
    r"\b\d{1,2}(?::\d{2})?\s*(?:am|pm)\b|\b\d{1,2}:\d{2}\b"
    r"|\bin\s+\d+\s*(?:hours?|hrs?|minutes?|mins?)\b"
)
_MONTH = re.compile(
    r"\b(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?"
    r"|aug(?:ust)?|sept?(?:ember)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\b"
)
_NUMERIC_DATE = re.compile(r"\b\d{1,4}[/.-]\d{1,2}(?:[/.-]\d{1,4})?\b")
_FULL_NUMERIC_DATE = re.compile(r"\b\d{1,4}[/.-]\d{1,2}[/.-]\d{1,4}\b")
_YEAR = re.compile(r"\b(?:19|20)\d{2}\b")


class ParseMethod(str, enum.Enum):
    NATURAL_LANGUAGE = "natural-language"
    LITERAL = "literal"
    DEFAULT = "default"


@dataclass(frozen=True)
class ParsedEventDate:
    """Outcome of a date resolution; never persisted."""

    start_time: datetime.datetime
    end_time: datetime.datetime
    original_input: str
    was_ambiguous: bool
    method: ParseMethod
    timezone: str = "UTC"


def get_zone(name: str | None, fallback: str = DEFAULT_TIMEZONE) -> ZoneInfo:
    """Return a :class:`ZoneInfo` for ``name`` or for ``fallback``."""
    if not name:
        return ZoneInfo(fallback)
    key = TIMEZONE_ALIASES.get(name.strip().lower(), name.strip())
    try:
        return ZoneInfo(key)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning("Invalid timezone %r, falling back to %s", name, fallback)
        return ZoneInfo(fallback)


def is_valid_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def format_event_date(
    value: datetime.datetime, timezone: str | ZoneInfo | None = None
) -> str:
    """Render ``value`` like ``Saturday, December 14, 2024 at 6:00 PM EST``."""
    zone = timezone if isinstance(timezone, ZoneInfo) else get_zone(timezone)
    local = value.astimezone(zone)
    hour = local.hour % 12 or 12
    return (
        f"{local:%A, %B} {local.day}, {local.year} at "
        f"{hour}:{local:%M %p} {local.tzname()}"
    )


def _normalise(text: str) -> str:
    text = text.strip().lower()
    for pattern, replacement in _PART_OF_DAY:
        text = pattern.sub(replacement, text)
    return _CONNECTORS.sub(" ", text)


def _states_time(text: str, period: str | None) -> bool:
    return period == "time" or bool(_TIME.search(text))


def _states_year(text: str) -> bool:
    return bool(_YEAR.search(text) or _FULL_NUMERIC_DATE.search(text))


def _is_ambiguous(text: str) -> bool:
    month_stated = bool(_MONTH.search(text) or _NUMERIC_DATE.search(text))
    return not (month_stated and _states_year(text))


class DateResolver:
    """Resolve potluck date text against a guild's timezone."""

    def __init__(
        self,
        store: PotluckStorage | None = None,
        default_timezone: str = DEFAULT_TIMEZONE,
        clock: Callable[[], datetime.datetime] = utcnow,
        default_hour: int = DEFAULT_HOUR,
        default_duration: datetime.timedelta = DEFAULT_DURATION,
    ) -> None:
        self.store = store
        self.default_timezone = default_timezone
        self.clock = clock
        self.default_hour = default_hour
        self.default_duration = default_duration

    # ------------------------------------------------------------------
    def effective_timezone(
        self, guild_id: str | None = None, timezone: str | None = None
    ) -> ZoneInfo:
        """Explicit ``timezone`` first, then the guild setting, then the default."""
        if timezone:
            return get_zone(timezone, self.default_timezone)
        if guild_id and self.store is not None:
            settings = self.store.get_guild_settings(guild_id)
            if settings:
                return get_zone(settings.timezone, self.default_timezone)
        return get_zone(self.default_timezone)

    def default_times(
        self,
        now: datetime.datetime | None = None,
        original_input: str = "",
        zone: ZoneInfo | None = None,
    ) -> ParsedEventDate:
        now = now or self.clock()
        start = now + DEFAULT_LEAD_TIME
        return ParsedEventDate(
            start_time=start,
            end_time=start + self.default_duration,
            original_input=original_input,
            was_ambiguous=False,
            method=ParseMethod.DEFAULT,
            timezone=str(zone or get_zone(self.default_timezone)),
        )

    def resolve(
        self,
        text: str | None,
        *,
        guild_id: str | None = None,
        timezone: str | None = None,
        now: datetime.datetime | None = None,
    ) -> ParsedEventDate:
        now = now or self.clock()
        zone = self.effective_timezone(guild_id, timezone)
        raw = (text or "").strip()
        if not raw:
            return self.default_times(now, zone=zone)

        parsed = None
        if not (_LITERAL.match(raw) and _states_year(raw)):
            parsed = self._parse_natural(raw, zone, now)
        if parsed is None:
            parsed = self._parse_literal(raw, zone, now)
        if parsed is not None:
            log.info(
                "Parsed %r as %s (%s)", raw, parsed.start_time.isoformat(), parsed.method.value
            )
            return parsed

        log.info("Date parsing failed for %r, using default event times", raw)
        return self.default_times(now, original_input=raw, zone=zone)

    # ------------------------------------------------------------------
    def _within_bounds(self, start: datetime.datetime, now: datetime.datetime) -> bool:
        return now - VALIDITY_WINDOW <= start <= now + VALIDITY_WINDOW

    def _at_default_hour(self, value: datetime.datetime, zone: ZoneInfo) -> datetime.datetime:
        local = value.astimezone(zone)
        return local.replace(hour=self.default_hour, minute=0, second=0, microsecond=0)

    def _dateparser(
        self, text: str, zone: ZoneInfo, base: datetime.datetime
    ) -> tuple[datetime.datetime | None, str | None]:
        data = DateDataParser(
            languages=["en"],
            settings={
                "PREFER_DATES_FROM": "future",
                "RELATIVE_BASE": base.astimezone(zone).replace(tzinfo=None),
                "TIMEZONE": str(zone),
                "RETURN_AS_TIMEZONE_AWARE": True,
                "RETURN_TIME_AS_PERIOD": True,
            },
        ).get_date_data(text)
        if data is None or data.date_obj is None:
            return None, None
        value = data.date_obj
        if value.tzinfo is None:
            value = value.replace(tzinfo=zone)
        return value, data.period

    def _parse_natural(
        self, raw: str, zone: ZoneInfo, now: datetime.datetime
    ) -> ParsedEventDate | None:
        text = _normalise(raw)
        start_text, end_text = text, None
        match = _RANGE.match(text)
        if match:
            start_text, end_text = match.group("start"), match.group("end")
        try:
            start, period = self._dateparser(start_text, zone, now)
            if start is None:
                return None
            if not _states_time(start_text, period):
                start = self._at_default_hour(start, zone)
            end = None
            if end_text:
                end, _ = self._dateparser(end_text, zone, start)
                if end is not None and end <= start:
                    end = None
        except Exception:  # dateparser raises assorted errors on odd input
            log.warning("Natural-language parsing failed for %r", raw, exc_info=True)
            return None

        if not self._within_bounds(start, now):
            log.info("Rejected out-of-range date %s for %r", start.isoformat(), raw)
            return None
        return ParsedEventDate(
            start_time=start,
            end_time=end or start + self.default_duration,
            original_input=raw,
            was_ambiguous=_is_ambiguous(text),
            method=ParseMethod.NATURAL_LANGUAGE,
            timezone=str(zone),
        )

    def _parse_literal(
        self, raw: str, zone: ZoneInfo, now: datetime.datetime
    ) -> ParsedEventDate | None:
        midnight = datetime.datetime.combine(now.astimezone(zone).date(), datetime.time())
        try:
            start = dateutil_parser.parse(raw, default=midnight)
        except (ValueError, OverflowError):
            return None
        if start.tzinfo is None:
            start = start.replace(tzinfo=zone)
        if start.hour == 0 and start.minute == 0:
            start = self._at_default_hour(start, zone)
        text = raw.lower()
        date_stated = bool(_NUMERIC_DATE.search(text) or _MONTH.search(text))
        if date_stated and not _states_year(text) and start < now:
            try:
                start = start.replace(year=start.year + 1)
            except ValueError:  # 29 February
                return None
        if not self._within_bounds(start, now):
            log.info("Rejected out-of-range date %s for %r", start.isoformat(), raw)
            return None
        return ParsedEventDate(
            start_time=start,
            end_time=start + self.default_duration,
            original_input=raw,
            was_ambiguous=_is_ambiguous(text),
            method=ParseMethod.LITERAL,
            timezone=str(zone),
        )
