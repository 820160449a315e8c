# apps/board/recurrence.py

"""
Recurrence engine for repeating tasks

Weekdays follow the stored JSON convention: 0 = Sunday ... 6 = Saturday.
Everything here is pure: no ORM access, inputs are never mutated.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Optional, Tuple

from dateutil.relativedelta import relativedelta

FREQUENCIES = ('daily', 'weekly', 'biweekly', 'monthly', 'quarterly', 'yearly')
MONTHLY_PATTERNS = ('dayOfMonth', 'dayOfWeek')

LAST_WEEK = -1
LAST_FULL_WEEK = -2
WEEK_OF_MONTH_VALUES = (1, 2, 3, 4, LAST_WEEK, LAST_FULL_WEEK)

SUNDAY, MONDAY, FRIDAY, SATURDAY = 0, 1, 5, 6

DAY_NAMES = ('Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday')
SHORT_DAY_NAMES = ('Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat')


@dataclass(frozen=True)
class RecurringConfig:
    """Recurrence rule embedded in a task as JSON"""

    frequency: str
    interval: int = 1
    days_of_week: Tuple[int, ...] = field(default_factory=tuple)
    monthly_pattern: Optional[str] = None
    day_of_month: Optional[int] = None
    week_of_month: Optional[int] = None
    monthly_day_of_week: Optional[int] = None
    end_date: Optional[date] = None
    end_after_occurrences: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict) -> 'RecurringConfig':
        """Builds a config from stored JSON (already validated at the boundary)"""
        end_date = data.get('endDate')
        if isinstance(end_date, str):
            end_date = date.fromisoformat(end_date)
        return cls(
            frequency=data['frequency'],
            interval=int(data.get('interval') or 1),
            days_of_week=tuple(sorted({int(d) for d in data.get('daysOfWeek') or []})),
            monthly_pattern=data.get('monthlyPattern'),
            day_of_month=data.get('dayOfMonth'),
            week_of_month=data.get('weekOfMonth'),
            monthly_day_of_week=data.get('monthlyDayOfWeek'),
            end_date=end_date,
            end_after_occurrences=data.get('endAfterOccurrences'),
        )

    def to_dict(self) -> Dict:
        data = {'frequency': self.frequency, 'interval': self.interval}
        if self.days_of_week:
            data['daysOfWeek'] = list(self.days_of_week)
        if self.monthly_pattern:
            data['monthlyPattern'] = self.monthly_pattern
        if self.day_of_month is not None:
            data['dayOfMonth'] = self.day_of_month
        if self.week_of_month is not None:
            data['weekOfMonth'] = self.week_of_month
        if self.monthly_day_of_week is not None:
            data['monthlyDayOfWeek'] = self.monthly_day_of_week
        if self.end_date is not None:
            data['endDate'] = self.end_date.isoformat()
        if self.end_after_occurrences is not None:
            data['endAfterOccurrences'] = self.end_after_occurrences
        return data

    @property
    def uses_weekday_pattern(self):
        return (
            self.monthly_pattern == 'dayOfWeek'
            and self.week_of_month is not None
            and self.monthly_day_of_week is not None
        )


def as_config(config) -> RecurringConfig:
    if isinstance(config, RecurringConfig):
        return config
    return RecurringConfig.from_dict(config)


def weekday_index(day: date) -> int:
    """Python weekday (Mon=0) to the stored convention (Sun=0)"""
    return (day.weekday() + 1) % 7


# === CALCULATION ===

def next_occurrence(config, from_date: date, today: Optional[date] = None) -> Optional[date]:
    """
    Next due date of a series after from_date, or None when the series ended

    When today is given, overdue results are pushed forward by whole
    intervals until they land strictly after today. The target day of
    monthly and yearly rules stays the one of from_date (or dayOfMonth)
    across those steps, a clamped month never shifts the later ones.
    """
    config = as_config(config)

    if config.end_date is not None and from_date >= config.end_date:
        return None

    target_day = from_date.day
    if config.frequency in ('monthly', 'quarterly') and config.day_of_month:
        target_day = config.day_of_month

    next_date = _advance(config, from_date, target_day)

    if today is not None:
        while next_date <= today:
            next_date = _advance(config, next_date, target_day)

    if config.end_date is not None and next_date > config.end_date:
        return None

    return next_date


def should_generate_next(config, occurrence_count: int) -> bool:
    """False once the series already holds endAfterOccurrences tasks"""
    config = as_config(config)
    if config.end_after_occurrences:
        return occurrence_count < config.end_after_occurrences
    return True


def capture_day_of_month(config: Optional[Dict], due_date: Optional[date]) -> Optional[Dict]:
    """
    Copy of a stored config with dayOfMonth taken from the due date

    Monthly and quarterly day-of-month rules keep the day of the first
    due date for the whole series. Other rules are returned unchanged.
    """
    if not config or due_date is None:
        return config
    if config.get('frequency') not in ('monthly', 'quarterly') or config.get('dayOfMonth'):
        return config
    if as_config(config).uses_weekday_pattern:
        return config
    return {**config, 'dayOfMonth': due_date.day}


def _clamp_day(day: date, target_day: int) -> date:
    last_day = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=min(target_day, last_day))


def _advance(config: RecurringConfig, current: date, target_day: int) -> date:
    frequency = config.frequency

    if frequency == 'daily':
        return current + timedelta(days=config.interval)
    if frequency == 'weekly':
        return next_weekly(current, config.days_of_week, config.interval)
    if frequency == 'biweekly':
        # the two-week cadence compounds with interval
        return next_weekly(current, config.days_of_week, config.interval * 2)
    if frequency == 'monthly':
        return _next_monthly(config, current, config.interval, target_day)
    if frequency == 'quarterly':
        return _next_monthly(config, current, config.interval * 3, target_day)
    if frequency == 'yearly':
        # Feb 29 comes back in leap years
        return _clamp_day(current + relativedelta(years=config.interval), target_day)

    raise ValueError(f"Unknown frequency: {frequency}")


def next_weekly(current: date, days_of_week, week_interval: int) -> date:
    """
    Next selected weekday after current

    Weeks run Sunday..Saturday. A later selected day in the same week wins,
    otherwise the first selected day week_interval weeks ahead.
    """
    days = sorted(set(days_of_week)) or [MONDAY]
    current_day = weekday_index(current)

    later_this_week = [d for d in days if d > current_day]
    if later_this_week:
        return current + timedelta(days=later_this_week[0] - current_day)

    days_until_next_week = 7 - current_day
    return current + timedelta(
        days=days_until_next_week + (week_interval - 1) * 7 + days[0]
    )


def _next_monthly(config: RecurringConfig, current: date, month_interval: int, target_day: int) -> date:
    target_month = current + relativedelta(months=month_interval)

    if config.uses_weekday_pattern:
        return nth_weekday_of_month(
            target_month.year,
            target_month.month,
            config.week_of_month,
            config.monthly_day_of_week,
        )

    return _clamp_day(target_month, target_day)


def nth_weekday_of_month(year: int, month: int, week_of_month: int, day_of_week: int) -> date:
    """
    Nth given weekday of a month

    week_of_month: 1-4 for the nth occurrence, -1 for the last one,
    -2 for the same weekday inside the last full Monday-Friday week.
    """
    last_day = date(year, month, calendar.monthrange(year, month)[1])

    if week_of_month == LAST_FULL_WEEK:
        if day_of_week in (SUNDAY, SATURDAY):
            day_of_week = MONDAY
        last_friday = last_day - timedelta(days=(weekday_index(last_day) - FRIDAY) % 7)
        monday = last_friday - timedelta(days=FRIDAY - MONDAY)
        return monday + timedelta(days=day_of_week - MONDAY)

    if week_of_month == LAST_WEEK:
        return last_day - timedelta(days=(weekday_index(last_day) - day_of_week) % 7)

    first_day = date(year, month, 1)
    first_match = first_day + timedelta(days=(day_of_week - weekday_index(first_day)) % 7)
    return first_match + timedelta(weeks=week_of_month - 1)


# === DESCRIPTIONS ===

def ordinal(number: int) -> str:
    if 10 <= number % 100 <= 20:
        suffix = 'th'
    else:
        suffix = {1: 'st', 2: 'nd', 3: 'rd'}.get(number % 10, 'th')
    return f"{number}{suffix}"


def week_of_month_label(week_of_month: int) -> str:
    if week_of_month == LAST_WEEK:
        return 'last'
    if week_of_month == LAST_FULL_WEEK:
        return 'last full week'
    return ordinal(week_of_month)


def _monthly_phrase(config: RecurringConfig) -> Optional[str]:
    if config.uses_weekday_pattern:
        return f"{week_of_month_label(config.week_of_month)} {DAY_NAMES[config.monthly_day_of_week]}"
    if config.day_of_month:
        return ordinal(config.day_of_month)
    return None


def describe(config) -> str:
    """Human readable sentence, e.g. 'Every 2 weeks on Mon, Thu, 5 times'"""
    config = as_config(config)
    interval = config.interval
    days = ', '.join(SHORT_DAY_NAMES[d] for d in config.days_of_week)

    if config.frequency == 'daily':
        text = 'Every day' if interval == 1 else f"Every {interval} days"
    elif config.frequency == 'weekly':
        text = 'Weekly' if interval == 1 else f"Every {interval} weeks"
        if days:
            text += f" on {days}"
    elif config.frequency == 'biweekly':
        text = 'Every 2 weeks' if interval == 1 else f"Every {interval * 2} weeks"
        if days:
            text += f" on {days}"
    elif config.frequency in ('monthly', 'quarterly'):
        unit = 'month' if config.frequency == 'monthly' else 'quarter'
        text = config.frequency.capitalize() if interval == 1 else f"Every {interval} {unit}s"
        phrase = _monthly_phrase(config)
        if phrase:
            text += f" on the {phrase}"
    else:
        text = 'Yearly' if interval == 1 else f"Every {interval} years"

    if config.end_date:
        text += f" until {config.end_date.strftime('%b')} {config.end_date.day}, {config.end_date.year}"
    elif config.end_after_occurrences:
        text += f", {config.end_after_occurrences} times"

    return text


def label(config) -> str:
    """Short badge text, e.g. 'Every 3 days' or 'Monthly on last Fri'"""
    config = as_config(config)
    text = config.frequency.capitalize()

    if config.interval > 1:
        units = {'daily': 'days', 'weekly': 'weeks', 'monthly': 'months', 'yearly': 'years'}
        if config.frequency in units:
            text = f"Every {config.interval} {units[config.frequency]}"

    if config.frequency in ('monthly', 'quarterly') and config.uses_weekday_pattern:
        text += f" on {week_of_month_label(config.week_of_month)} {SHORT_DAY_NAMES[config.monthly_day_of_week]}"

    return text
