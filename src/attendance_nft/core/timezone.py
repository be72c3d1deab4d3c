"""UTC timezone enforcement.

Sets the TZ environment variable to UTC and provides the timestamp helper used
for every persisted datetime (naive UTC, matching the TIMESTAMP columns).
"""

import os
from datetime import UTC, datetime

os.environ["TZ"] = "UTC"


def utcnow() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(UTC).replace(tzinfo=None)
