from datetime import datetime, timezone
import hashlib


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp; every stored datetime is aware UTC."""
    return datetime.now(timezone.utc)


def hash_destination(destination: str) -> str:
    """One-way hash so logs never carry a raw phone number or email"""
    return hashlib.sha256(destination.encode()).hexdigest()
