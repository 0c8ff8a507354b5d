"""
Recurrence rules and date sequence generation for recurring job series.

A series' recurrence configuration is modelled as one of a small set of
frozen rule types (``Daily``, ``Weekly``, ``Monthly``, ``Quarterly``,
``Yearly``, ``Custom``). Each type carries only the parameters that make
sense for its pattern, so a weekly rule without a weekday cannot exist.

``generate_dates`` turns a rule plus a series validity window and a
requested date window into the ordered list of occurrence dates. It has no
side effects and never touches the database.

Weekdays use 0 = Sunday .. 6 = Saturday, matching the stored
``recurrence_day_of_week`` column.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import ClassVar, Dict, Iterator, List, Optional, Union

from dateutil.relativedelta import relativedelta

from validators import ValidationError

PATTERNS = ('daily', 'weekly', 'monthly', 'quarterly', 'yearly', 'custom')


def _check_interval(interval) -> None:
    if isinstance(interval, bool) or not isinstance(interval, int):
        raise ValidationError("recurrence_interval must be an integer", 'recurrence_interval')
    if interval < 1:
        raise ValidationError("recurrence_interval must be at least 1", 'recurrence_interval')


@dataclass(frozen=True)
class Daily:
    interval: int = 1
    pattern: ClassVar[str] = 'daily'

    def __post_init__(self):
        _check_interval(self.interval)


@dataclass(frozen=True)
class Weekly:
    interval: int
    day_of_week: int
    pattern: ClassVar[str] = 'weekly'

    def __post_init__(self):
        _check_interval(self.interval)
        if isinstance(self.day_of_week, bool) or not isinstance(self.day_of_week, int) \
                or not 0 <= self.day_of_week <= 6:
            raise ValidationError(
                "recurrence_day_of_week must be between 0 (Sunday) and 6 (Saturday)",
                'recurrence_day_of_week'
            )


@dataclass(frozen=True)
class Monthly:
    interval: int
    day_of_month: int
    pattern: ClassVar[str] = 'monthly'

    def __post_init__(self):
        _check_interval(self.interval)
        if isinstance(self.day_of_month, bool) or not isinstance(self.day_of_month, int) \
                or not 1 <= self.day_of_month <= 31:
            raise ValidationError(
                "recurrence_day_of_month must be between 1 and 31", 'recurrence_day_of_month'
            )


@dataclass(frozen=True)
class Quarterly:
    """Every ``3 * interval`` months on the start date's day of month."""
    interval: int = 1
    pattern: ClassVar[str] = 'quarterly'

    def __post_init__(self):
        _check_interval(self.interval)


@dataclass(frozen=True)
class Yearly:
    """Every ``interval`` years on the start date's month and day."""
    interval: int = 1
    pattern: ClassVar[str] = 'yearly'

    def __post_init__(self):
        _check_interval(self.interval)


@dataclass(frozen=True)
class Custom:
    """No generation rule; instances must be populated by other means."""
    pattern: ClassVar[str] = 'custom'


RecurrenceRule = Union[Daily, Weekly, Monthly, Quarterly, Yearly, Custom]


def rule_from_fields(pattern: str, interval: Optional[int] = 1,
                     day_of_week: Optional[int] = None,
                     day_of_month: Optional[int] = None) -> RecurrenceRule:
    """
    Build a recurrence rule from flat column values.

    Parameters that do not belong to the pattern are ignored.

    Raises:
        ValidationError: unknown pattern, bad interval, or a missing or
            out-of-range anchor for weekly/monthly patterns
    """
    if pattern not in PATTERNS:
        raise ValidationError(
            f"recurrence_pattern must be one of: {', '.join(PATTERNS)}", 'recurrence_pattern'
        )

    interval = 1 if interval is None else interval
    _check_interval(interval)

    if pattern == 'daily':
        return Daily(interval)
    if pattern == 'weekly':
        if day_of_week is None:
            raise ValidationError(
                "recurrence_day_of_week is required for weekly series", 'recurrence_day_of_week'
            )
        return Weekly(interval, day_of_week)
    if pattern == 'monthly':
        if day_of_month is None:
            raise ValidationError(
                "recurrence_day_of_month is required for monthly series", 'recurrence_day_of_month'
            )
        return Monthly(interval, day_of_month)
    if pattern == 'quarterly':
        return Quarterly(interval)
    if pattern == 'yearly':
        return Yearly(interval)
    return Custom()


def rule_from_series(series) -> RecurrenceRule:
    """Build the rule stored on a ``JobSeries`` row."""
    return rule_from_fields(
        series.recurrence_pattern,
        series.recurrence_interval,
        series.recurrence_day_of_week,
        series.recurrence_day_of_month,
    )


def rule_to_fields(rule: RecurrenceRule) -> Dict[str, Optional[int]]:
    """Flatten a rule back into column values, clearing unused anchors."""
    return {
        'recurrence_pattern': rule.pattern,
        'recurrence_interval': getattr(rule, 'interval', 1),
        'recurrence_day_of_week': getattr(rule, 'day_of_week', None),
        'recurrence_day_of_month': getattr(rule, 'day_of_month', None),
    }


def sunday_weekday(day: date) -> int:
    """Weekday number with Sunday as 0."""
    return (day.weekday() + 1) % 7


def _fixed_step(anchor: date, step_days: int, lower: date) -> Iterator[date]:
    k = 0
    if lower > anchor:
        k = -(-(lower - anchor).days // step_days)
    while True:
        yield anchor + timedelta(days=k * step_days)
        k += 1


def _month_step(start_date: date, step_months: int, anchor_day: int, lower: date) -> Iterator[date]:
    # Each candidate is computed from the base month so clamping never drifts
    base = start_date.replace(day=1)
    months_to_lower = (lower.year - base.year) * 12 + (lower.month - base.month)
    k = max(0, months_to_lower // step_months)
    while True:
        yield base + relativedelta(months=k * step_months, day=anchor_day)
        k += 1


def _candidates(rule: RecurrenceRule, start_date: date, lower: date) -> Iterator[date]:
    if isinstance(rule, Daily):
        return _fixed_step(start_date, rule.interval, lower)
    if isinstance(rule, Weekly):
        offset = (rule.day_of_week - sunday_weekday(start_date)) % 7
        return _fixed_step(start_date + timedelta(days=offset), 7 * rule.interval, lower)
    if isinstance(rule, Monthly):
        return _month_step(start_date, rule.interval, rule.day_of_month, lower)
    if isinstance(rule, Quarterly):
        return _month_step(start_date, 3 * rule.interval, start_date.day, lower)
    if isinstance(rule, Yearly):
        return _month_step(start_date, 12 * rule.interval, start_date.day, lower)
    return iter(())


def iter_dates(rule: RecurrenceRule, start_date: date, window_start: date,
               window_end: date, end_date: Optional[date] = None) -> Iterator[date]:
    """
    Lazily yield occurrence dates in ascending order.

    Dates are restricted to both ``[window_start, window_end]`` and
    ``[start_date, end_date]`` (open-ended when ``end_date`` is None).
    """
    lower = max(start_date, window_start)
    upper = window_end if end_date is None else min(window_end, end_date)
    if lower > upper:
        return

    previous = None
    for candidate in _candidates(rule, start_date, lower):
        if candidate > upper:
            return
        if candidate < lower or candidate == previous:
            continue
        previous = candidate
        yield candidate


def generate_dates(rule: RecurrenceRule, start_date: date, window_start: date,
                   window_end: date, end_date: Optional[date] = None) -> List[date]:
    """Ordered, duplicate-free occurrence dates for a series within a window."""
    return list(iter_dates(rule, start_date, window_start, window_end, end_date))
