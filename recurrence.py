"""
Weekly recurrence of a dose rule.

A rule either fires every day (``Daily``) or on an explicit set of weekdays
(``Weekly``). Weekdays are numbered 0=Sunday..6=Saturday. In storage and on
the wire the set is ``null`` for every day, or a JSON array of ints such as
``[0,6]``. An explicit empty array is a ``Weekly`` rule that never fires.
"""
import json
import re
from datetime import date, time
from typing import Annotated, Any, FrozenSet, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from errors import ScheduleDataError

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
_TIME_RE = re.compile(TIME_PATTERN)

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


class Daily(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["daily"] = "daily"

    def is_active_on(self, weekday: int) -> bool:
        return True


class Weekly(BaseModel):
    """Fires on the listed weekdays. Build from stored data with ``parse_days``."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["weekly"] = "weekly"
    days: FrozenSet[int] = Field(default_factory=frozenset, description="Weekdays (0=Sun..6=Sat)")

    @field_validator("days")
    @classmethod
    def _check_days(cls, v: FrozenSet[int]) -> FrozenSet[int]:
        bad = [d for d in v if d < 0 or d > 6]
        if bad:
            raise ValueError(f"weekdays out of range 0..6: {sorted(bad)}")
        return v

    def is_active_on(self, weekday: int) -> bool:
        return weekday in self.days


Recurrence = Annotated[Union[Daily, Weekly], Field(discriminator="kind")]


def sunday_weekday(day: date) -> int:
    """Weekday index of ``day`` with 0=Sunday..6=Saturday."""
    return (day.weekday() + 1) % 7


def parse_days(raw: Any) -> Union[Daily, Weekly]:
    """
    Parse a stored weekday set into a recurrence.

    Accepts ``None`` or an empty string (every day), JSON text such as
    ``"[1, 3]"``, or an already decoded list/tuple/set of ints. Anything else
    raises ``ScheduleDataError``; malformed data is never defaulted to daily.
    """
    if isinstance(raw, (Daily, Weekly)):
        return raw
    if raw is None:
        return Daily()

    value = raw
    if isinstance(raw, str):
        if not raw.strip():
            return Daily()
        try:
            value = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ScheduleDataError(f"weekday set is not valid JSON: {raw!r}") from e
        if value is None:
            return Daily()

    if not isinstance(value, (list, tuple, set, frozenset)):
        raise ScheduleDataError(f"weekday set must be an array of ints, got {raw!r}")

    days = set()
    for item in value:
        # bool is an int subclass; true/false are not weekdays
        if isinstance(item, bool) or not isinstance(item, int):
            raise ScheduleDataError(f"weekday {item!r} is not an integer")
        if item < 0 or item > 6:
            raise ScheduleDataError(f"weekday {item} is outside 0..6")
        days.add(item)
    return Weekly(days=frozenset(days))


def serialize_days(recurrence: Union[Daily, Weekly]) -> Optional[str]:
    """Inverse of ``parse_days``: ``None`` for daily, else a compact JSON array."""
    if isinstance(recurrence, Daily):
        return None
    return json.dumps(sorted(recurrence.days), separators=(",", ":"))


def parse_time(text: str) -> time:
    """Parse a zero-padded 24-hour ``HH:MM`` string."""
    if not isinstance(text, str) or not _TIME_RE.fullmatch(text):
        raise ScheduleDataError(f"dose time must be HH:MM (24-hour), got {text!r}")
    hours, minutes = text.split(":")
    return time(int(hours), int(minutes))


def describe(recurrence: Union[Daily, Weekly]) -> str:
    if isinstance(recurrence, Daily):
        return "Every day"
    if not recurrence.days:
        return "Never"
    return ", ".join(WEEKDAY_NAMES[d][:3] for d in sorted(recurrence.days))
