from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Python-side timestamp default, so inserted rows need no refresh."""
    return datetime.now(timezone.utc)
