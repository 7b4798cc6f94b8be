"""Time helpers."""

from datetime import datetime
from typing import Union

import dateutil.parser
from pytz import UTC

MS_ONE_SECOND = 1000
MS_ONE_DAY = 1000 * 60 * 60 * 24


def now() -> int:
    """Get the current epoch time, in milliseconds."""
    return epoch_ms(datetime.now(tz=UTC))


def epoch_ms(t: datetime) -> int:
    """Convert a :class:`.datetime` to epoch milliseconds."""
    if t.tzinfo is None:
        t = UTC.localize(t)
    delta = t - datetime.fromtimestamp(0, tz=UTC)
    return int(round(delta.total_seconds() * MS_ONE_SECOND))


def to_epoch_ms(value: Union[int, float, str, datetime]) -> int:
    """
    Coerce a timestamp from a store payload to epoch milliseconds.

    The account store is not consistent about timestamps: most are epoch
    milliseconds, but some records carry ISO-8601 strings.
    """
    if isinstance(value, datetime):
        return epoch_ms(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return epoch_ms(dateutil.parser.parse(value))
    return int(value)
