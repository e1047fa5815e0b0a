"""Utility functions and helpers."""

from queuedesk.utils.datetime_utils import date_key_for, to_api_timezone, today_key, utc_now

__all__ = [
    "date_key_for",
    "to_api_timezone",
    "today_key",
    "utc_now",
]
