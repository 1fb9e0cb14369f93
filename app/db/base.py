"""SQLAlchemy declarative base and model imports for Alembic."""
from app.db.session import Base  # noqa: F401
from app.models.video import Video  # noqa: F401

__all__ = ["Base", "Video"]
