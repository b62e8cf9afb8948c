import os
from datetime import datetime, timezone

FIXED_TIMESTAMP = datetime(1980, 1, 1, tzinfo=timezone.utc)


def is_deterministic() -> bool:
    return os.getenv("PKGSMITH_DETERMINISTIC") == "1"


def utc_now() -> datetime:
    if is_deterministic():
        return FIXED_TIMESTAMP
    return datetime.now(timezone.utc)
