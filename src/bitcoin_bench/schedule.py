"""Seven-field cron expressions evaluated in UTC.

Fields, in order::

    seconds minutes hours day-of-month month day-of-week [year]

Each field accepts ``*``, numbers, ``a-b`` ranges, ``,`` lists and ``/``
steps (``*/n``, ``a/n``, ``a-b/n``). Months may be written ``JAN``-``DEC``
and weekdays ``SUN``-``SAT``; numeric weekdays run 1-7 starting on Sunday.
``?`` is accepted as ``*`` in the two day fields. A date must match both the
day-of-month and the day-of-week field.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from .errors import ScheduleError

MIN_YEAR = 1970
MAX_YEAR = 2099

_MONTH_NAMES = {
    name: index
    for index, name in enumerate(
        ("JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"),
        start=1,
    )
}
_WEEKDAY_NAMES = {
    name: index
    for index, name in enumerate(("SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT"), start=1)
}


@dataclass(frozen=True)
class _FieldSpec:
    name: str
    low: int
    high: int
    aliases: dict[str, int]
    allow_question: bool = False


_FIELDS = (
    _FieldSpec("seconds", 0, 59, {}),
    _FieldSpec("minutes", 0, 59, {}),
    _FieldSpec("hours", 0, 23, {}),
    _FieldSpec("day-of-month", 1, 31, {}, allow_question=True),
    _FieldSpec("month", 1, 12, _MONTH_NAMES),
    _FieldSpec("day-of-week", 1, 7, _WEEKDAY_NAMES, allow_question=True),
    _FieldSpec("year", MIN_YEAR, MAX_YEAR, {}),
)


def _value(token: str, spec: _FieldSpec, expression: str) -> int:
    alias = spec.aliases.get(token.upper())
    if alias is not None:
        return alias
    if not token.isdigit():
        raise ScheduleError(expression, f"bad {spec.name} value {token!r}")
    value = int(token)
    if not spec.low <= value <= spec.high:
        raise ScheduleError(
            expression, f"{spec.name} value {value} outside {spec.low}-{spec.high}"
        )
    return value


def _parse_field(text: str, spec: _FieldSpec, expression: str) -> frozenset[int]:
    values: set[int] = set()
    for part in text.split(","):
        if not part:
            raise ScheduleError(expression, f"empty list item in {spec.name} field")

        base, slash, step_text = part.partition("/")
        step = 1
        if slash:
            if not step_text.isdigit() or int(step_text) == 0:
                raise ScheduleError(expression, f"bad step {step_text!r} in {spec.name} field")
            step = int(step_text)

        if base in ("*", "?"):
            if base == "?" and not spec.allow_question:
                raise ScheduleError(expression, f"'?' is not allowed in the {spec.name} field")
            start, end = spec.low, spec.high
        elif "-" in base:
            low_text, _, high_text = base.partition("-")
            start = _value(low_text, spec, expression)
            end = _value(high_text, spec, expression)
            if start > end:
                raise ScheduleError(expression, f"reversed range {base!r} in {spec.name} field")
        else:
            start = _value(base, spec, expression)
            # "a/n" means every n starting at a
            end = spec.high if slash else start

        values.update(range(start, end + 1, step))
    return frozenset(values)


@dataclass(frozen=True)
class CronSchedule:
    expression: str
    seconds: frozenset[int]
    minutes: frozenset[int]
    hours: frozenset[int]
    days_of_month: frozenset[int]
    months: frozenset[int]
    days_of_week: frozenset[int]
    years: frozenset[int]

    @classmethod
    def parse(cls, expression: str) -> "CronSchedule":
        fields = expression.split()
        if len(fields) == 6:
            fields.append("*")
        if len(fields) != 7:
            raise ScheduleError(expression, f"expected 6 or 7 fields, got {len(fields)}")
        parsed = [
            _parse_field(text, spec, expression) for text, spec in zip(fields, _FIELDS, strict=True)
        ]
        return cls(expression, *parsed)

    def _day_matches(self, moment: datetime) -> bool:
        # isoweekday: Monday=1..Sunday=7; cron: Sunday=1..Saturday=7
        weekday = moment.isoweekday() % 7 + 1
        return moment.day in self.days_of_month and weekday in self.days_of_week

    def next_after(self, moment: datetime) -> datetime | None:
        """First fire time strictly after ``moment``, or None if there is none."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=UTC)
        candidate = moment.astimezone(UTC).replace(microsecond=0) + timedelta(seconds=1)
        last_year = max(self.years)

        while candidate.year <= last_year:
            if candidate.year not in self.years:
                candidate = candidate.replace(
                    year=candidate.year + 1, month=1, day=1, hour=0, minute=0, second=0
                )
                continue
            if candidate.month not in self.months:
                if candidate.month == 12:
                    candidate = candidate.replace(
                        year=candidate.year + 1, month=1, day=1, hour=0, minute=0, second=0
                    )
                else:
                    candidate = candidate.replace(
                        month=candidate.month + 1, day=1, hour=0, minute=0, second=0
                    )
                continue
            if not self._day_matches(candidate):
                candidate = candidate.replace(hour=0, minute=0, second=0) + timedelta(days=1)
                continue
            if candidate.hour not in self.hours:
                candidate = candidate.replace(minute=0, second=0) + timedelta(hours=1)
                continue
            if candidate.minute not in self.minutes:
                candidate = candidate.replace(second=0) + timedelta(minutes=1)
                continue
            if candidate.second not in self.seconds:
                candidate += timedelta(seconds=1)
                continue
            return candidate
        return None

    def upcoming(self, start: datetime) -> Iterator[datetime]:
        """Yield successive fire times after ``start``."""
        current = self.next_after(start)
        while current is not None:
            yield current
            current = self.next_after(current)


__all__ = ["MAX_YEAR", "MIN_YEAR", "CronSchedule"]
