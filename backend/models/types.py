import datetime as _dt

from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import FunctionElement
from sqlalchemy.types import TypeDecorator, DateTime


def _as_utc(value):
    if isinstance(value, str):
        # Some SQLite setups may return strings
        value = _dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=_dt.timezone.utc)
    return value.astimezone(_dt.timezone.utc)


class UtcAwareDateTime(TypeDecorator):
    """Always write UTC and always return tz-aware datetimes (UTC)."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return _as_utc(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return _as_utc(value)


class utcnow(FunctionElement):
    """The store's own UTC clock, usable as a value or as a server default.

    Watermarks written with it never depend on the API host clock.
    """

    type = UtcAwareDateTime()
    inherit_cache = True


@compiles(utcnow)
def _default_utcnow(element, compiler, **kw):
    return "CURRENT_TIMESTAMP"


@compiles(utcnow, "postgresql")
def _pg_utcnow(element, compiler, **kw):
    # timestamptz, so the session TimeZone never shifts it
    return "statement_timestamp()"


@compiles(utcnow, "sqlite")
def _sqlite_utcnow(element, compiler, **kw):
    # same layout SQLAlchemy uses to store SQLite datetimes (microseconds), so
    # string comparisons against python-written timestamps stay ordered
    return "strftime('%Y-%m-%d %H:%M:%f', 'now') || '000'"
