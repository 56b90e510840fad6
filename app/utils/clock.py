import threading
from datetime import datetime, timedelta, timezone

_lock = threading.Lock()
_last: datetime = datetime.min.replace(tzinfo=timezone.utc)


def utcnow() -> datetime:
    """Current UTC time, strictly increasing across calls within this process.

    Rows created back-to-back (bulk seeding, an append right after a create)
    would otherwise be able to share a timestamp and lose their order.
    """
    global _last
    with _lock:
        now = datetime.now(timezone.utc)
        if now <= _last:
            now = _last + timedelta(microseconds=1)
        _last = now
        return now
