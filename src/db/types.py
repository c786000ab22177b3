from __future__ import annotations

import datetime as dt

from sqlalchemy.types import DateTime, TypeDecorator

from src.utils.time import ensure_utc


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamps on backends that only keep naive values (SQLite).

    Written as naive UTC; read back with UTC tzinfo attached.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: dt.datetime | None, dialect):
        if value is None:
            return None
        return ensure_utc(value).replace(tzinfo=None)

    def process_result_value(self, value: dt.datetime | None, dialect):
        if value is None:
            return None
        return ensure_utc(value)
