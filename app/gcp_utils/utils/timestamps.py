"""Conversion of Google Cloud timestamp types to datetimes."""

from datetime import date, datetime, timezone
from typing import Any, Optional

from google.api_core.datetime_helpers import DatetimeWithNanoseconds
from google.protobuf.timestamp_pb2 import Timestamp


def get_datetime(o: Any) -> Optional[datetime]:
    """Convert a possible timestamp value to a datetime.

    Args:
        o: None, a datetime (including DatetimeWithNanoseconds returned by
            Firestore), a date, or a protobuf Timestamp

    Returns:
        datetime or None. Protobuf timestamps and dates become aware UTC
        datetimes; datetimes are returned unchanged.

    Raises:
        ValueError: If the value is not a supported timestamp type
    """
    if o is None:
        return None
    if isinstance(o, datetime):
        return o
    if isinstance(o, date):
        return datetime(o.year, o.month, o.day, tzinfo=timezone.utc)
    if isinstance(o, Timestamp):
        return o.ToDatetime(tzinfo=timezone.utc)
    raise ValueError(f"Unable to get datetime from object[{type(o)}]: {o!r}")


def get_precise_datetime(o: Any) -> Optional[DatetimeWithNanoseconds]:
    """Convert a possible timestamp value keeping nanosecond precision.

    Raises:
        ValueError: If the value is not a supported timestamp type
    """
    if o is None:
        return None
    if isinstance(o, DatetimeWithNanoseconds):
        return o
    if isinstance(o, Timestamp):
        return DatetimeWithNanoseconds.from_timestamp_pb(o)
    dt = get_datetime(o)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return DatetimeWithNanoseconds(
        dt.year,
        dt.month,
        dt.day,
        dt.hour,
        dt.minute,
        dt.second,
        dt.microsecond,
        tzinfo=dt.tzinfo,
    )
