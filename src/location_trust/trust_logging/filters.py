"""Log filters for coordinate redaction and correlation ID injection."""

import logging
import re


class CoordinateRedactionFilter(logging.Filter):
    """Truncates high-precision decimal coordinates in log messages.

    Three decimals (~110m) is enough to debug region and reconciliation
    decisions without writing a worker's exact position to the logs.
    """

    COORDINATE_PATTERN = re.compile(r"(-?\d{1,3}\.\d{3})\d+")

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str) and "." in record.msg:
            record.msg = self.COORDINATE_PATTERN.sub(r"\1", record.msg)
        return True


class DefaultCorrelationFilter(logging.Filter):
    """Adds default correlation_id if not present."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True
