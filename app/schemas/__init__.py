from app.schemas.video import VideoBase, VideoProcessingState, VideoResponse, VideoUploadResponse
