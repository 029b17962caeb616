"""Schedule-day gating

The tool is invoked daily; substantive work only happens on the first
occurrence of the configured weekday in each month.
"""

from datetime import date

from smb_backup.config.settings import WEEKDAYS


def is_first_weekday_of_month(today: date, day_of_week: str) -> bool:
    """Return True if ``today`` is the first ``day_of_week`` of its month

    Args:
        today: Date to check
        day_of_week: Full weekday name, e.g. "Friday"
    """
    return WEEKDAYS[today.weekday()] == day_of_week and today.day <= 7
