"""SQLAlchemy models."""

from clicklog.core.database import Base
from clicklog.models.click import Click

__all__ = ["Base", "Click"]
