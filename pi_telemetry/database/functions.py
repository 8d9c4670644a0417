"""
Dialect-specific SQL helpers for time bucketing
"""

from datetime import timedelta

from sqlalchemy import DateTime, literal_column
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import FunctionElement


class date_bin(FunctionElement):
    """Floor a timestamp to a multiple of ``stride`` seconds since the Unix epoch"""

    type = DateTime(timezone=True)
    name = "date_bin"
    inherit_cache = True


@compiles(date_bin, "postgresql")
def _date_bin_postgresql(element, compiler, **kw):
    stride, column = list(element.clauses)
    return "date_bin(make_interval(secs => %s), %s, TIMESTAMPTZ '1970-01-01 00:00:00+00')" % (
        compiler.process(stride, **kw),
        compiler.process(column, **kw),
    )


@compiles(date_bin, "sqlite")
def _date_bin_sqlite(element, compiler, **kw):
    stride, column = list(element.clauses)
    stride_sql = compiler.process(stride, **kw)
    return "datetime((CAST(strftime('%%s', %s) AS INTEGER) / %s) * %s, 'unixepoch')" % (
        compiler.process(column, **kw),
        stride_sql,
        stride_sql,
    )


def bucket_start(column, width: timedelta):
    """Bucket expression for ``column`` with an epoch-aligned bucket ``width``"""
    seconds = int(width.total_seconds())
    if seconds <= 0:
        raise ValueError("bucket width must be positive")
    # Rendered inline so the stride is part of the statement cache key
    return date_bin(literal_column(str(seconds)), column)
