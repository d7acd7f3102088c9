import secrets
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Clock:
    """Wall clock handed to services so expiry logic can be driven from tests."""

    def now(self) -> datetime:
        return utcnow()


def random_bytes(length: int) -> bytes:
    return secrets.token_bytes(length)
