"""Caption video export skill: picture + questions → WebM via FFmpeg."""
from .render_caption_video import (
    CaptionVideoRenderer,
    EncodingError,
    ImageLoadError,
    RenderSession,
    RenderState,
    UnsupportedFormatError,
    VideoExportError,
)

__all__ = [
    "CaptionVideoRenderer",
    "EncodingError",
    "ImageLoadError",
    "RenderSession",
    "RenderState",
    "UnsupportedFormatError",
    "VideoExportError",
]
