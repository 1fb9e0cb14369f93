from app.models.video import ProcessingStatus, Video

__all__ = ["ProcessingStatus", "Video"]
