from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC now, matching the DATETIME columns of the primary store"""
    return datetime.now(timezone.utc).replace(tzinfo=None)
