from datetime import date
from typing import List, Optional
from core.config import CHURN_WINDOW_DAYS
from core.logger import Logger
from .exceptions import ValidationFailed

logger = Logger(__name__)


class DateRangeValidator:
    """
    Checks an inclusive [start_date, end_date] range against a day cap.

    The window rule counts both ends: a range spanning exactly
    `max_window_days` days is accepted, one more day is rejected.
    The series behind a range reaches back one range length plus a
    `lookback_days` trailing window before `start_date`; ranges whose
    series would start before the first representable date are rejected.
    All violations are collected before failing.
    """

    def __init__(
        self,
        start_date: Optional[date],
        end_date: Optional[date],
        max_window_days: int = CHURN_WINDOW_DAYS,
        lookback_days: int = CHURN_WINDOW_DAYS,
    ):
        self.start_date = start_date
        self.end_date = end_date
        self.max_window_days = max_window_days
        self.lookback_days = lookback_days

    @property
    def errors(self) -> List[str]:
        errors = []
        if self.start_date is None:
            errors.append("start_date can't be blank")
        if self.end_date is None:
            errors.append("end_date can't be blank")
        if self.start_date is None or self.end_date is None:
            return errors

        if self.end_date < self.start_date:
            errors.append("end_date must be on or after start_date")
        days = (self.end_date - self.start_date).days + 1
        if days > self.max_window_days:
            errors.append(f"date range cannot exceed {self.max_window_days} days")
        elif days > 0 and (self.start_date - date.min).days < days + self.lookback_days - 1:
            errors.append("start_date is too early")
        return errors

    def is_valid(self) -> bool:
        return not self.errors

    def validate(self):
        errors = self.errors
        if errors:
            logger.debug(f"Rejected range {self.start_date}..{self.end_date}: {errors}")
            raise ValidationFailed(errors)
