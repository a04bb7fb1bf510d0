"""UTC / Unix-seconds time utilities.

Round expiry on the ledger is absolute Unix seconds, so the keeper compares
against ``unix_now()``; ``utc_now()`` is for timestamps we persist ourselves.
"""

import time
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def unix_now() -> int:
    """Return current wall-clock time in whole Unix seconds."""
    return int(time.time())
