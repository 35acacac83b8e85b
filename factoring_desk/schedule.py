"""
Schedule Calculator

Weekly due dates for a loan's installments. Every comparison works on
start-of-day dates: datetimes are truncated before any subtraction so that
time-of-day never shifts a day count.
"""

from datetime import date, datetime, timedelta
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

DateLike = Union[date, datetime]

INSTALLMENT_INTERVAL_DAYS = 7


@dataclass(frozen=True)
class ScheduleEntry:
    installment_number: int     # 1-based schedule position
    due_date: date
    days_since_due: int         # Negative while the due date is in the future


def normalize_date(value: DateLike) -> date:
    """Truncate a datetime to its calendar date"""
    if isinstance(value, datetime):
        return value.date()
    return value


def days_between(start: DateLike, end: DateLike) -> int:
    """Whole days from start to end on normalized dates"""
    return (normalize_date(end) - normalize_date(start)).days


def iso_week(value: DateLike) -> Tuple[int, int]:
    """(ISO year, ISO week number), comparable across year boundaries"""
    year, week, _ = normalize_date(value).isocalendar()
    return (year, week)


def week_rolled_over(due_date: DateLike, today: DateLike) -> bool:
    """True once today falls in a later ISO week than the due date"""
    return iso_week(today) > iso_week(due_date)


def due_date_for(first_installment_date: DateLike, installment_number: int) -> date:
    """Due date of a 1-based installment number"""
    if installment_number < 1:
        raise ValueError("Installment number must be 1 or greater")
    offset = INSTALLMENT_INTERVAL_DAYS * (installment_number - 1)
    return normalize_date(first_installment_date) + timedelta(days=offset)


def calculate_schedule(
    first_installment_date: DateLike,
    total_installments: int,
    today: Optional[DateLike] = None
) -> List[ScheduleEntry]:
    """
    Build the weekly schedule for a loan.

    Args:
        first_installment_date: Due date of installment #1
        total_installments: Number of weekly installments
        today: Reference date for days_since_due; defaults to the current date

    Returns:
        One ScheduleEntry per installment, in order
    """
    if total_installments < 0:
        raise ValueError("Total installments cannot be negative")
    today = normalize_date(today or date.today())

    schedule = []
    for number in range(1, total_installments + 1):
        due = due_date_for(first_installment_date, number)
        schedule.append(ScheduleEntry(
            installment_number=number,
            due_date=due,
            days_since_due=days_between(due, today)
        ))
    return schedule


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range; either bound may be open"""
    start: Optional[date] = None
    end: Optional[date] = None

    def __post_init__(self):
        if self.start and self.end and self.start > self.end:
            raise ValueError("Date range start must not be after its end")

    def contains(self, value: DateLike) -> bool:
        value = normalize_date(value)
        if self.start is not None and value < self.start:
            return False
        if self.end is not None and value > self.end:
            return False
        return True


def this_week_range(today: Optional[DateLike] = None) -> DateRange:
    """Monday through Friday of the current week"""
    today = normalize_date(today or date.today())
    monday = today - timedelta(days=today.weekday())
    return DateRange(start=monday, end=monday + timedelta(days=4))


def next_week_range(today: Optional[DateLike] = None) -> DateRange:
    """Monday through Friday of the following week"""
    current = this_week_range(today)
    return DateRange(start=current.start + timedelta(days=7),
                     end=current.end + timedelta(days=7))
