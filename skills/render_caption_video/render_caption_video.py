"""
Caption Video Renderer: turn a practice picture and its guiding questions into a WebM.

Every caption gets one fixed-length slide over the dimmed picture. The text fades
in, holds, and fades out. A closing slide ("练习结束！") is always appended.

Frames are drawn with Pillow and streamed as raw RGB into FFmpeg (libvpx-vp9),
so only the current frame is ever held in memory. The animation is driven by a
frame clock instead of wall time: a slow machine produces the same video, it
just takes longer.

Usage:
    renderer = CaptionVideoRenderer()
    path = await renderer.render(image_path, ["图里有什么？", "他们在做什么？"])
"""

import asyncio
import base64
import binascii
import functools
import io
import itertools
import logging
import math
import os
import shutil
import subprocess
import urllib.parse
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from PIL import Image, ImageDraw, ImageFilter, ImageFont

from config import (
    CAPTION_FONT_CANDIDATES,
    CAPTION_FONT_PATH,
    EXPORT_FILENAME,
    EXPORTS_DIR,
    FADE_DURATION_SECONDS,
    OVERLAY_OPACITY,
    SLIDE_DURATION_SECONDS,
    TERMINAL_CAPTION,
    VIDEO_CODEC,
    VIDEO_CONTAINER,
    VIDEO_EXPORT_FPS,
    VIDEO_EXPORT_WIDTH,
)

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path, bytes, Image.Image]
FontLoader = Callable[[int], ImageFont.FreeTypeFont]

# Caption styling, relative to frame width
FONT_SIZE_RATIO = 1 / 25
LINE_PITCH_RATIO = 1 / 20
MIN_FONT_SIZE_RATIO = 1 / 50
MAX_LINE_WIDTH_RATIO = 0.9
MAX_BLOCK_HEIGHT_RATIO = 0.9
FONT_SHRINK_STEP = 0.9
ELLIPSIS = "…"

TEXT_COLOR = (255, 255, 255, 255)
SHADOW_COLOR = (0, 0, 0, 179)  # 70% black
SHADOW_BLUR_RADIUS = 5

FINALIZE_TIMEOUT_SECONDS = 120

# Float tolerance when comparing frame-clock times to slide boundaries
_TIME_EPSILON = 1e-6


# =============================================================================
# Errors
# =============================================================================


class VideoExportError(Exception):
    """Base class for caption video export failures."""


class ImageLoadError(VideoExportError):
    """The background image could not be read or decoded."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class UnsupportedFormatError(VideoExportError):
    """The host cannot encode the requested container/codec."""


class EncodingError(VideoExportError):
    """The encoder failed while frames were being captured."""


class RenderState(str, Enum):
    """Lifecycle of a single export."""
    IDLE = "idle"
    IMAGE_LOADING = "image_loading"
    ENCODING = "encoding"
    FINALIZING = "finalizing"
    DELIVERED = "delivered"
    FAILED = "failed"


# =============================================================================
# Pure helpers
# =============================================================================


def frame_size(image_width: int, image_height: int, width: int = VIDEO_EXPORT_WIDTH) -> tuple[int, int]:
    """Fixed output width, height derived from the source aspect ratio (half-up rounding)."""
    if image_width <= 0 or image_height <= 0:
        raise ImageLoadError(f"Image has invalid dimensions: {image_width}x{image_height}")
    aspect_ratio = image_width / image_height
    height = int(math.floor(width / aspect_ratio + 0.5))
    return width, max(1, height)


def caption_opacity(
    elapsed: float,
    slide_duration: float = SLIDE_DURATION_SECONDS,
    fade_duration: float = FADE_DURATION_SECONDS,
) -> float:
    """
    Trapezoidal opacity envelope for one slide.

    0 → 1 over the first fade window, 1 while holding, 1 → 0 over the last
    fade window. Clamped to [0, 1].
    """
    if fade_duration <= 0:
        opacity = 1.0
    elif elapsed < fade_duration:
        opacity = elapsed / fade_duration
    elif elapsed > slide_duration - fade_duration:
        opacity = (slide_duration - elapsed) / fade_duration
    else:
        opacity = 1.0
    return max(0.0, min(1.0, opacity))


def wrap_caption(text: str, measure: Callable[[str], float], max_width: float) -> list[str]:
    """
    Greedy character-level wrapping.

    Chinese has no spaces between words, so lines break between any two
    characters. A line always keeps at least one character.
    """
    lines = []
    current = ""
    for char in text:
        candidate = current + char
        if current and measure(candidate) > max_width:
            lines.append(current)
            current = char
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


@functools.lru_cache(maxsize=32)
def load_caption_font(size: int) -> ImageFont.FreeTypeFont:
    """Load the bold caption font at a pixel size, falling back to Pillow's default."""
    for font_path in [CAPTION_FONT_PATH, *CAPTION_FONT_CANDIDATES]:
        if font_path and Path(font_path).exists():
            try:
                return ImageFont.truetype(font_path, size)
            except OSError as e:
                logger.debug(f"Could not load font {font_path}: {e}")
    logger.warning("No CJK caption font found, using Pillow default (set CAPTION_FONT_PATH)")
    return ImageFont.load_default(size=size)


@dataclass
class CaptionLayout:
    """Wrapped lines and where to draw them."""
    lines: list[str]
    font: ImageFont.FreeTypeFont
    font_size: int
    line_pitch: float
    start_y: float
    max_line_width: float

    def line_positions(self, frame_width: int) -> list[tuple[float, float]]:
        """Center anchor for each line."""
        return [(frame_width / 2, self.start_y + i * self.line_pitch) for i in range(len(self.lines))]


def _clip_lines(lines: list[str], keep: int, measure: Callable[[str], float], max_width: float) -> list[str]:
    """Keep the first `keep` lines and end the last one with an ellipsis."""
    kept = lines[:keep]
    last = kept[-1]
    while last and measure(last + ELLIPSIS) > max_width:
        last = last[:-1]
    kept[-1] = last + ELLIPSIS
    return kept


def layout_caption(
    text: str,
    frame_width: int,
    frame_height: int,
    font_loader: FontLoader = load_caption_font,
) -> CaptionLayout:
    """
    Wrap and position a caption inside the frame.

    Overflow policy: when the wrapped block is taller than 90% of the frame,
    the font shrinks in 10% steps down to width/50. If it still does not fit,
    the block is clipped and the last visible line ends with an ellipsis.
    """
    max_width = frame_width * MAX_LINE_WIDTH_RATIO
    max_block_height = frame_height * MAX_BLOCK_HEIGHT_RATIO
    font_size = frame_width * FONT_SIZE_RATIO
    min_font_size = frame_width * MIN_FONT_SIZE_RATIO
    pitch_per_size = LINE_PITCH_RATIO / FONT_SIZE_RATIO

    while True:
        font = font_loader(max(1, round(font_size)))
        measure = font.getlength
        lines = wrap_caption(text, measure, max_width)
        line_pitch = font_size * pitch_per_size
        if len(lines) * line_pitch <= max_block_height or font_size <= min_font_size:
            break
        font_size = max(min_font_size, font_size * FONT_SHRINK_STEP)

    if len(lines) * line_pitch > max_block_height:
        keep = max(1, int(max_block_height // line_pitch))
        logger.warning(f"Caption too long for frame, clipping {len(lines)} lines to {keep}")
        lines = _clip_lines(lines, keep, measure, max_width)

    start_y = (frame_height - (len(lines) - 1) * line_pitch) / 2
    return CaptionLayout(
        lines=lines,
        font=font,
        font_size=max(1, round(font_size)),
        line_pitch=line_pitch,
        start_y=start_y,
        max_line_width=max_width,
    )


def load_image(source: ImageSource) -> Image.Image:
    """
    Decode an image from a path, raw bytes, a data: URL, or a PIL image.

    Raises ImageLoadError carrying the underlying cause.
    """
    try:
        if isinstance(source, Image.Image):
            image = source.copy()
        elif isinstance(source, (bytes, bytearray)):
            image = Image.open(io.BytesIO(source))
        elif isinstance(source, str) and source.startswith("data:"):
            header, _, payload = source.partition(",")
            if header.endswith(";base64"):
                data = base64.b64decode(payload, validate=True)
            else:
                data = urllib.parse.unquote_to_bytes(payload)
            image = Image.open(io.BytesIO(data))
        else:
            image = Image.open(Path(source))
        image.load()
    except (OSError, ValueError, binascii.Error, Image.DecompressionBombError) as e:
        raise ImageLoadError(f"Failed to load image for video export: {e}", cause=e) from e
    return image


def prepare_background(image: Image.Image, width: int, height: int, overlay_opacity: float = OVERLAY_OPACITY) -> Image.Image:
    """Scale the picture to fill the frame and dim it for legibility."""
    background = image.convert("RGBA").resize((width, height), Image.Resampling.LANCZOS)
    overlay = Image.new("RGBA", (width, height), (0, 0, 0, round(255 * overlay_opacity)))
    return Image.alpha_composite(background, overlay)


def _with_opacity(layer: Image.Image, opacity: float) -> Image.Image:
    """Scale a layer's alpha channel."""
    faded = layer.copy()
    alpha = faded.getchannel("A").point(lambda a: round(a * opacity))
    faded.putalpha(alpha)
    return faded


# =============================================================================
# Render session
# =============================================================================


@dataclass
class RenderSession:
    """
    State for one export, advanced by time-stamped ticks.

    IDLE → IMAGE_LOADING → ENCODING → FINALIZING → DELIVERED, or FAILED.
    `captions` already includes the terminal caption.
    """
    captions: list[str]
    target_width: int = VIDEO_EXPORT_WIDTH
    slide_duration: float = SLIDE_DURATION_SECONDS
    fade_duration: float = FADE_DURATION_SECONDS
    font_loader: FontLoader = load_caption_font
    state: RenderState = RenderState.IDLE
    width: int = 0
    height: int = 0
    background: Optional[Image.Image] = None
    caption_index: int = 0
    slide_started_at: Optional[float] = None
    frames_rendered: int = 0
    _layers: dict[int, Image.Image] = field(default_factory=dict, repr=False)

    @classmethod
    def for_captions(
        cls,
        captions: Sequence[str],
        terminal_caption: str = TERMINAL_CAPTION,
        **kwargs,
    ) -> "RenderSession":
        """New session for user captions plus the closing slide."""
        return cls(captions=[*captions, terminal_caption], **kwargs)

    @property
    def slide_count(self) -> int:
        return len(self.captions)

    @property
    def expected_duration(self) -> float:
        return self.slide_count * self.slide_duration

    @property
    def current_caption(self) -> Optional[str]:
        if self.caption_index < len(self.captions):
            return self.captions[self.caption_index]
        return None

    def load(self, source: ImageSource) -> None:
        """Decode the picture and build the dimmed background."""
        self.state = RenderState.IMAGE_LOADING
        try:
            image = load_image(source)
            try:
                self.width, self.height = frame_size(image.width, image.height, self.target_width)
                self.background = prepare_background(image, self.width, self.height)
            finally:
                image.close()
        except ImageLoadError:
            self.state = RenderState.FAILED
            raise

    def begin(self) -> None:
        if self.background is None:
            raise RuntimeError("RenderSession.begin() called before load()")
        self.state = RenderState.ENCODING

    def tick(self, now: float) -> Optional[Image.Image]:
        """
        Advance to time `now` and draw the frame for it.

        Returns None once the terminal slide has finished, at which point the
        session is FINALIZING. At most one slide boundary is crossed per tick,
        so a stalled clock never skips a caption.
        """
        if self.state is not RenderState.ENCODING:
            return None

        if self.slide_started_at is None:
            self.slide_started_at = now
        elapsed = now - self.slide_started_at

        if elapsed >= self.slide_duration - _TIME_EPSILON:
            self.caption_index += 1
            self.slide_started_at += self.slide_duration
            elapsed = now - self.slide_started_at
            if elapsed >= self.slide_duration - _TIME_EPSILON:
                # Clock jumped past a whole slide; restart the window here
                self.slide_started_at = now
                elapsed = 0.0

        if self.caption_index >= len(self.captions):
            self.state = RenderState.FINALIZING
            return None

        opacity = caption_opacity(max(0.0, elapsed), self.slide_duration, self.fade_duration)
        frame = self.draw_frame(self.caption_index, opacity)
        self.frames_rendered += 1
        return frame

    def draw_frame(self, caption_index: int, opacity: float) -> Image.Image:
        """Composite background, dim overlay, and caption at `opacity`."""
        frame = self.background.copy()
        if opacity > 0:
            layer = self._caption_layer(caption_index)
            if opacity < 1:
                layer = _with_opacity(layer, opacity)
            frame.alpha_composite(layer)
        return frame.convert("RGB")

    def _caption_layer(self, caption_index: int) -> Image.Image:
        """Shadowed caption text on a transparent layer (cached per slide)."""
        if caption_index in self._layers:
            return self._layers[caption_index]

        # Only the current slide's layer is ever needed again
        self._layers.clear()

        size = (self.width, self.height)
        layout = layout_caption(self.captions[caption_index], self.width, self.height, self.font_loader)
        positions = layout.line_positions(self.width)

        shadow = Image.new("RGBA", size, (0, 0, 0, 0))
        shadow_draw = ImageDraw.Draw(shadow)
        for line, xy in zip(layout.lines, positions):
            shadow_draw.text(xy, line, font=layout.font, fill=SHADOW_COLOR, anchor="mm")
        shadow = shadow.filter(ImageFilter.GaussianBlur(SHADOW_BLUR_RADIUS))

        text_layer = Image.new("RGBA", size, (0, 0, 0, 0))
        text_draw = ImageDraw.Draw(text_layer)
        for line, xy in zip(layout.lines, positions):
            text_draw.text(xy, line, font=layout.font, fill=TEXT_COLOR, anchor="mm")

        layer = Image.alpha_composite(shadow, text_layer)
        self._layers[caption_index] = layer
        return layer

    def finalize(self) -> None:
        self.state = RenderState.FINALIZING

    def deliver(self) -> None:
        self.state = RenderState.DELIVERED

    def fail(self) -> None:
        self.state = RenderState.FAILED

    def release(self) -> None:
        """Drop drawing buffers."""
        if self.background is not None:
            self.background.close()
            self.background = None
        self._layers.clear()


# =============================================================================
# Streaming encoder
# =============================================================================


class StreamingEncoder:
    """
    FFmpeg subprocess fed raw RGB frames over stdin.

    Writes to a temporary `.partial` file; the caller moves it into place only
    after `finish()` succeeds. Used as a context manager, any exception kills
    FFmpeg and deletes the partial file.
    """

    def __init__(
        self,
        output_path: Path,
        width: int,
        height: int,
        fps: int = VIDEO_EXPORT_FPS,
        codec: str = VIDEO_CODEC,
        container: str = VIDEO_CONTAINER,
    ):
        self.output_path = Path(output_path)
        self.width = width
        self.height = height
        self.fps = fps
        self.codec = codec
        self.container = container
        self.process: Optional[subprocess.Popen] = None
        self.frames_written = 0
        self._stderr: Optional[str] = None

    @staticmethod
    def check_supported(codec: str = VIDEO_CODEC) -> None:
        """Raise UnsupportedFormatError unless FFmpeg with `codec` is available."""
        ffmpeg = shutil.which("ffmpeg")
        if not ffmpeg:
            raise UnsupportedFormatError("FFmpeg not found on PATH; WebM/VP9 export is not supported on this host.")
        try:
            result = subprocess.run(
                [ffmpeg, "-hide_banner", "-encoders"],
                capture_output=True,
                text=True,
                check=True,
                timeout=30,
            )
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            raise UnsupportedFormatError(f"Could not query FFmpeg encoders: {e}") from e

        available = {parts[1] for parts in (line.split() for line in result.stdout.splitlines()) if len(parts) > 1}
        if codec not in available:
            raise UnsupportedFormatError(f"WebM with VP9 codec is not supported on this host ({codec} encoder missing).")

    def _build_command(self) -> list[str]:
        return [
            "ffmpeg", "-y",
            "-hide_banner",
            "-loglevel", "error",
            "-f", "rawvideo",
            "-pix_fmt", "rgb24",
            "-s", f"{self.width}x{self.height}",
            "-r", str(self.fps),
            "-i", "-",
            "-an",
            "-c:v", self.codec,
            "-b:v", "0",
            "-crf", "32",
            "-deadline", "realtime",
            "-cpu-used", "8",
            "-row-mt", "1",
            "-pix_fmt", "yuv420p",
            "-f", self.container,
            str(self.partial_path),
        ]

    @property
    def partial_path(self) -> Path:
        return self.output_path.with_name(f".{self.output_path.name}.partial")

    def start(self) -> "StreamingEncoder":
        cmd = self._build_command()
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            self.process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise UnsupportedFormatError(f"Could not start FFmpeg: {e}") from e
        return self

    def submit(self, frame: Image.Image) -> None:
        """Send one frame to the encoder."""
        if self.process is None:
            raise EncodingError("Encoder not started")
        if frame.size != (self.width, self.height):
            raise EncodingError(f"Frame size {frame.size} does not match encoder {self.width}x{self.height}")
        try:
            self.process.stdin.write(frame.tobytes())
        except (BrokenPipeError, OSError) as e:
            stderr = self._drain()
            raise EncodingError(f"Encoder stopped accepting frames: {stderr[-500:] or e}") from e
        self.frames_written += 1

    def finish(self) -> Path:
        """Flush and wait for FFmpeg; returns the partial file path."""
        if self.process is None:
            raise EncodingError("Encoder not started")
        stderr = self._drain()
        if self.process.returncode != 0:
            raise EncodingError(f"FFmpeg exited with code {self.process.returncode}: {stderr[-500:]}")
        if not self.partial_path.exists():
            raise EncodingError("FFmpeg produced no output file")
        return self.partial_path

    def abort(self) -> None:
        """Kill FFmpeg if running and delete any partial output."""
        if self.process is not None:
            if self.process.poll() is None:
                self.process.kill()
            self._drain()
        self.partial_path.unlink(missing_ok=True)

    def _drain(self) -> str:
        """Close stdin, wait for FFmpeg to exit, and return its stderr."""
        if self._stderr is None:
            try:
                _, err = self.process.communicate(timeout=FINALIZE_TIMEOUT_SECONDS)
            except subprocess.TimeoutExpired:
                self.process.kill()
                _, err = self.process.communicate()
            self._stderr = (err or b"").decode("utf-8", errors="replace")
        return self._stderr

    def __enter__(self) -> "StreamingEncoder":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.abort()
        return False


# =============================================================================
# Renderer
# =============================================================================


class CaptionVideoRenderer:
    """
    Render a captioned practice video from one picture.

    Usage:
        renderer = CaptionVideoRenderer()
        output = await renderer.render(
            image=Path("picture.png"),
            captions=["这幅图描绘了什么情景？", "接下来可能会发生什么事？"],
        )
    """

    def __init__(
        self,
        output_dir: Path = None,
        width: int = VIDEO_EXPORT_WIDTH,
        fps: int = VIDEO_EXPORT_FPS,
        slide_duration: float = SLIDE_DURATION_SECONDS,
        fade_duration: float = FADE_DURATION_SECONDS,
        terminal_caption: str = TERMINAL_CAPTION,
        codec: str = VIDEO_CODEC,
        font_loader: FontLoader = load_caption_font,
    ):
        """Initialize renderer with output directory and timing."""
        self.output_dir = Path(output_dir) if output_dir else EXPORTS_DIR
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.width = width
        self.fps = fps
        self.slide_duration = slide_duration
        self.fade_duration = fade_duration
        self.terminal_caption = terminal_caption
        self.codec = codec
        self.font_loader = font_loader

    def new_session(self, captions: Sequence[str]) -> RenderSession:
        return RenderSession.for_captions(
            captions,
            terminal_caption=self.terminal_caption,
            target_width=self.width,
            slide_duration=self.slide_duration,
            fade_duration=self.fade_duration,
            font_loader=self.font_loader,
        )

    async def render(
        self,
        image: ImageSource,
        captions: Sequence[str],
        output_path: Path = None,
    ) -> Path:
        """
        Render and deliver the video.

        Args:
            image: Picture as path, bytes, data: URL, or PIL image
            captions: Caption texts in playback order (may be empty)
            output_path: Destination file (default: export dir / fixed filename)

        Returns:
            Path to the finished WebM file

        Raises:
            ImageLoadError, UnsupportedFormatError, EncodingError
        """
        return await asyncio.to_thread(self.render_sync, image, list(captions), output_path)

    def render_sync(
        self,
        image: ImageSource,
        captions: Sequence[str],
        output_path: Path = None,
    ) -> Path:
        """Blocking version of `render`."""
        export_dir = None
        if output_path is None:
            # Unique directory per export so concurrent requests never share a file
            export_dir = self.output_dir / uuid.uuid4().hex[:8]
            export_dir.mkdir(parents=True, exist_ok=True)
            output_path = export_dir / EXPORT_FILENAME
        output_path = Path(output_path)

        session = self.new_session(captions)
        logger.info(f"Exporting caption video: {len(captions)} captions + closing slide")

        try:
            session.load(image)
            StreamingEncoder.check_supported(self.codec)

            with StreamingEncoder(output_path, session.width, session.height, self.fps, self.codec) as encoder:
                session.begin()
                for frame_index in itertools.count():
                    try:
                        frame = session.tick(frame_index / self.fps)
                    except (OSError, ValueError) as e:
                        raise EncodingError(f"Failed to draw frame {frame_index}: {e}") from e
                    if frame is None:
                        break
                    encoder.submit(frame)
                session.finalize()
                partial = encoder.finish()
                try:
                    os.replace(partial, output_path)
                except OSError as e:
                    raise EncodingError(f"Could not deliver {output_path.name}: {e}") from e
        except VideoExportError as e:
            session.fail()
            logger.error(f"Caption video export failed ({type(e).__name__}): {e}")
            raise
        except Exception:
            session.fail()
            raise
        finally:
            session.release()
            if session.state is RenderState.FAILED and export_dir is not None:
                shutil.rmtree(export_dir, ignore_errors=True)

        session.deliver()
        logger.info(
            f"Caption video ready: {output_path} "
            f"({session.width}x{session.height}, {session.frames_rendered} frames, "
            f"{session.expected_duration:.1f}s)"
        )
        return output_path


async def render_caption_video(
    image: ImageSource,
    captions: Sequence[str],
    output_path: Path = None,
) -> Path:
    """Render with default settings. See CaptionVideoRenderer.render."""
    return await CaptionVideoRenderer().render(image, captions, output_path)
