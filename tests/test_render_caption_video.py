"""
Test: Caption Video Export

Verifies that:
1. The opacity envelope fades in, holds, and fades out
2. Captions wrap per character and overflow shrinks then clips
3. A render session shows every caption plus the closing slide, in order
4. Bad images and missing encoders fail without leaving files behind
5. A real export (when FFmpeg has libvpx-vp9) is a WebM/VP9 of the right size and length

Run: python tests/test_render_caption_video.py
"""

import asyncio
import base64
import io
import sys
import tempfile
from pathlib import Path

import pytest
from PIL import Image

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import TERMINAL_CAPTION
from skills.render_caption_video.render_caption_video import (
    ELLIPSIS,
    CaptionVideoRenderer,
    EncodingError,
    ImageLoadError,
    RenderSession,
    RenderState,
    StreamingEncoder,
    UnsupportedFormatError,
    caption_opacity,
    frame_size,
    layout_caption,
    load_image,
    wrap_caption,
)
from skills.render_caption_video import render_caption_video as render_module
from skills.verify_output import ffprobe_available, verify_video


class FakeFont:
    """Every character is `size` pixels wide."""

    def __init__(self, size: int):
        self.size = size

    def getlength(self, text: str) -> float:
        return len(text) * self.size


def _png_bytes(width: int = 160, height: int = 90, color=(255, 255, 255)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def _vp9_available() -> bool:
    try:
        StreamingEncoder.check_supported()
    except UnsupportedFormatError:
        return False
    return True


def test_caption_opacity():
    """Trapezoid: 0 → 1 over the fade, hold, 1 → 0 at the end."""

    print("=" * 60)
    print("TEST: Caption Opacity Envelope")
    print("=" * 60)

    cases = [
        (-1.0, 0.0),
        (0.0, 0.0),
        (0.25, 0.5),
        (0.5, 1.0),
        (2.0, 1.0),
        (3.5, 1.0),
        (3.75, 0.5),
        (4.0, 0.0),
        (5.0, 0.0),
    ]
    for elapsed, expected in cases:
        value = caption_opacity(elapsed, 4.0, 0.5)
        print(f"  t={elapsed:5.2f}s → {value:.2f}")
        assert abs(value - expected) < 1e-9, f"t={elapsed}: expected {expected}, got {value}"

    assert caption_opacity(1.0, 4.0, 0.0) == 1.0
    print("✓ Opacity envelope correct")


def test_frame_size():
    print()
    print("=" * 60)
    print("TEST: Frame Size")
    print("=" * 60)

    assert frame_size(1600, 900) == (1280, 720)
    assert frame_size(1000, 1000) == (1280, 1280)
    assert frame_size(900, 1600) == (1280, 2276)
    # 10 / (4/3) = 7.5 rounds half up
    assert frame_size(4, 3, width=10) == (10, 8)
    print("✓ Height follows aspect ratio")

    with pytest.raises(ImageLoadError):
        frame_size(0, 100)
    print("✓ Zero-size image rejected")


def test_wrap_caption():
    print()
    print("=" * 60)
    print("TEST: Character Wrapping")
    print("=" * 60)

    lines = wrap_caption("一二三四五六七", len, 3)
    print(f"  → {lines}")
    assert lines == ["一二三", "四五六", "七"]

    # A character wider than the line still gets its own line
    lines = wrap_caption("大字", lambda s: 10 * len(s), 5)
    assert lines == ["大", "字"]

    assert wrap_caption("", len, 10) == []
    assert wrap_caption("图里有什么？", len, 100) == ["图里有什么？"]
    print("✓ Wrapping correct")


def test_layout_caption():
    print()
    print("=" * 60)
    print("TEST: Caption Layout")
    print("=" * 60)

    # Short caption: one line, vertically centered
    layout = layout_caption("你好", 1280, 720, FakeFont)
    assert layout.lines == ["你好"]
    assert layout.font_size == round(1280 / 25)
    assert layout.line_pitch == pytest.approx(1280 / 20)
    assert layout.start_y == pytest.approx(360)
    assert layout.line_positions(1280) == [(640, pytest.approx(360))]
    print("✓ Short caption centered")

    # Two lines are centered around the middle
    layout = layout_caption("字" * 30, 1280, 720, FakeFont)
    assert len(layout.lines) == 2
    assert all(FakeFont(layout.font_size).getlength(line) <= 1280 * 0.9 for line in layout.lines)
    mid = layout.start_y + layout.line_pitch / 2
    assert mid == pytest.approx(360)
    print("✓ Multi-line caption centered")

    # Too tall at full size: font shrinks until it fits
    layout = layout_caption("字" * 500, 100, 50, FakeFont)
    print(f"  → shrunk to {layout.font_size}px, {len(layout.lines)} lines")
    assert layout.font_size < 4
    assert len(layout.lines) * layout.line_pitch <= 45
    assert not layout.lines[-1].endswith(ELLIPSIS)
    assert "".join(layout.lines) == "字" * 500
    print("✓ Overflowing caption shrinks")

    # Too tall even at the minimum size: clipped with an ellipsis
    layout = layout_caption("字" * 5000, 100, 50, FakeFont)
    print(f"  → clipped to {len(layout.lines)} lines at {layout.font_size}px")
    assert layout.font_size == 2
    assert len(layout.lines) * layout.line_pitch <= 45
    assert layout.lines[-1].endswith(ELLIPSIS)
    assert all(FakeFont(layout.font_size).getlength(line) <= 90 for line in layout.lines)
    print("✓ Overflow at minimum size is clipped")


def test_load_image():
    print()
    print("=" * 60)
    print("TEST: Image Loading")
    print("=" * 60)

    png = _png_bytes(32, 18)

    assert load_image(png).size == (32, 18)
    data_url = "data:image/png;base64," + base64.b64encode(png).decode("ascii")
    assert load_image(data_url).size == (32, 18)
    assert load_image(Image.new("RGB", (5, 5))).size == (5, 5)
    print("✓ Bytes, data URL, and PIL image accepted")

    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "picture.png"
        path.write_bytes(png)
        assert load_image(path).size == (32, 18)
        assert load_image(str(path)).size == (32, 18)
    print("✓ File paths accepted")

    bad_sources = [
        b"not an image",
        "data:image/png;base64,@@@@",
        Path("/nonexistent/picture.png"),
    ]
    for source in bad_sources:
        with pytest.raises(ImageLoadError) as excinfo:
            load_image(source)
        assert excinfo.value.cause is not None
        print(f"  ✓ Rejected {str(source)[:30]!r}: {type(excinfo.value.cause).__name__}")


def test_session_slides():
    """Each caption plus the closing slide gets exactly one slide of frames."""

    print()
    print("=" * 60)
    print("TEST: Render Session Slides")
    print("=" * 60)

    fps = 10
    session = RenderSession.for_captions(
        ["Hello", "World"],
        target_width=240,
        slide_duration=0.5,
        fade_duration=0.1,
    )
    assert session.state is RenderState.IDLE
    assert session.captions[-1] == TERMINAL_CAPTION
    assert session.slide_count == 3
    assert session.expected_duration == pytest.approx(1.5)

    assert session.tick(0.0) is None, "tick before begin() must not draw"

    session.load(Image.new("RGB", (160, 90), (255, 255, 255)))
    assert (session.width, session.height) == (240, 135)

    session.begin()
    assert session.state is RenderState.ENCODING

    shown = []
    frames = []
    frame_index = 0
    while True:
        frame = session.tick(frame_index / fps)
        if frame is None:
            break
        shown.append(session.caption_index)
        frames.append(frame)
        frame_index += 1

    print(f"  → {len(frames)} frames, caption per frame: {shown}")
    assert session.state is RenderState.FINALIZING
    assert len(frames) == 15
    assert session.frames_rendered == 15
    assert shown == [0] * 5 + [1] * 5 + [2] * 5
    assert all(f.size == (240, 135) and f.mode == "RGB" for f in frames)
    print("✓ Every slide shown for its full duration, in order")

    # First frame of a slide is fully faded out: just the dimmed picture
    r, g, b = frames[0].getpixel((0, 0))
    assert abs(r - 127) <= 2 and r == g == b
    assert frames[0].tobytes() != frames[2].tobytes(), "caption should be visible mid-slide"
    print("✓ Overlay dims the picture and captions fade in")

    session.release()
    assert session.background is None


def test_session_no_captions():
    """An empty caption list still plays the closing slide."""

    print()
    print("=" * 60)
    print("TEST: Render Session Without Captions")
    print("=" * 60)

    fps = 10
    session = RenderSession.for_captions([], target_width=240, slide_duration=0.5, fade_duration=0.1)
    assert session.captions == [TERMINAL_CAPTION]
    assert session.expected_duration == pytest.approx(0.5)

    session.load(Image.new("RGB", (160, 90)))
    session.begin()
    frames = []
    while True:
        frame = session.tick(len(frames) / fps)
        if frame is None:
            break
        assert session.current_caption == TERMINAL_CAPTION
        frames.append(frame)

    assert len(frames) == 5
    assert session.tick(len(frames) / fps) is None
    assert session.state is RenderState.FINALIZING
    print("✓ Only the closing slide, for exactly one slide duration")


def test_session_clock_jump():
    """A stalled clock advances one slide at a time instead of skipping captions."""

    print()
    print("=" * 60)
    print("TEST: Render Session Clock Jump")
    print("=" * 60)

    session = RenderSession.for_captions(["A", "B"], target_width=100, slide_duration=1.0, fade_duration=0.2)
    session.load(Image.new("RGB", (32, 32)))
    session.begin()

    assert session.tick(0.0) is not None
    assert session.tick(10.0) is not None
    assert session.caption_index == 1
    assert session.slide_started_at == 10.0
    print("✓ Jump advanced exactly one caption")

    assert session.tick(10.5) is not None
    assert session.current_caption == "B"
    assert session.tick(11.0) is not None
    assert session.current_caption == TERMINAL_CAPTION
    assert session.tick(12.0) is None
    assert session.state is RenderState.FINALIZING
    print("✓ Terminal caption still shown")


def test_bad_image_leaves_no_file():
    print()
    print("=" * 60)
    print("TEST: Bad Image Export")
    print("=" * 60)

    with tempfile.TemporaryDirectory() as tmp:
        output = Path(tmp) / "export.webm"
        renderer = CaptionVideoRenderer(output_dir=tmp)
        with pytest.raises(ImageLoadError):
            renderer.render_sync(b"definitely not a picture", ["问题一"], output)
        assert list(Path(tmp).iterdir()) == []

        # Default output location: the per-export directory is removed too
        with pytest.raises(ImageLoadError):
            renderer.render_sync(b"definitely not a picture", ["问题一"])
        assert list(Path(tmp).iterdir()) == []
    print("✓ ImageLoadError raised and nothing written")


def test_unsupported_codec():
    print()
    print("=" * 60)
    print("TEST: Unsupported Encoder")
    print("=" * 60)

    with pytest.raises(UnsupportedFormatError):
        StreamingEncoder.check_supported("no-such-encoder")

    with tempfile.TemporaryDirectory() as tmp:
        output = Path(tmp) / "export.webm"
        renderer = CaptionVideoRenderer(output_dir=tmp, codec="no-such-encoder")
        with pytest.raises(UnsupportedFormatError):
            asyncio.run(renderer.render(_png_bytes(), ["问题一"], output))
        assert list(Path(tmp).iterdir()) == []
    print("✓ UnsupportedFormatError raised and nothing written")


def test_encoder_not_started():
    encoder = StreamingEncoder(Path(tempfile.gettempdir()) / "unused.webm", 16, 16)
    with pytest.raises(EncodingError):
        encoder.submit(Image.new("RGB", (16, 16)))
    with pytest.raises(EncodingError):
        encoder.finish()
    print("✓ Encoder refuses frames before start()")


def test_export_video():
    """End-to-end export through FFmpeg."""

    print()
    print("=" * 60)
    print("TEST: WebM Export (FFmpeg)")
    print("=" * 60)

    if not _vp9_available():
        pytest.skip("FFmpeg with libvpx-vp9 not available")

    captions = ["图里有什么？", "他们在做什么？"]
    with tempfile.TemporaryDirectory() as tmp:
        renderer = CaptionVideoRenderer(
            output_dir=tmp,
            width=160,
            fps=10,
            slide_duration=0.5,
            fade_duration=0.1,
        )
        output = asyncio.run(renderer.render(_png_bytes(320, 180, (40, 120, 200)), captions))

        print(f"  → {output}")
        assert output.exists()
        assert output.parent.parent == Path(tmp)
        assert not list(output.parent.glob("*.partial")), "partial file left behind"

        if ffprobe_available():
            result = verify_video(
                output,
                expected_duration=1.5,
                expected_width=160,
                expected_height=90,
                min_file_size=100,
                duration_tolerance=0.15,
            )
            print(f"  → checks: {result.checks}")
            assert result.passed, result.failures
            assert not result.has_audio
    print("✓ Export produced a valid WebM")


def _small_renderer(output_dir) -> CaptionVideoRenderer:
    return CaptionVideoRenderer(output_dir=output_dir, width=160, fps=10, slide_duration=0.5, fade_duration=0.1)


def test_export_no_captions():
    """An empty caption list exports just the closing slide."""

    print()
    print("=" * 60)
    print("TEST: WebM Export Without Captions")
    print("=" * 60)

    if not _vp9_available():
        pytest.skip("FFmpeg with libvpx-vp9 not available")

    with tempfile.TemporaryDirectory() as tmp:
        output = _small_renderer(tmp).render_sync(_png_bytes(320, 180), [])
        assert output.exists()

        if ffprobe_available():
            result = verify_video(
                output,
                expected_duration=0.5,
                expected_width=160,
                expected_height=90,
                min_file_size=100,
                duration_tolerance=0.15,
            )
            print(f"  → checks: {result.checks}")
            assert result.passed, result.failures
    print("✓ One-slide WebM exported")


def test_encoder_dies_mid_render():
    """FFmpeg exiting part way through surfaces as EncodingError with no leftovers."""

    print()
    print("=" * 60)
    print("TEST: Encoder Dies Mid-Render")
    print("=" * 60)

    if not _vp9_available():
        pytest.skip("FFmpeg with libvpx-vp9 not available")

    original_submit = StreamingEncoder.submit

    def dying_submit(self, frame):
        if self.frames_written == 3 and self.process.poll() is None:
            self.process.kill()
            self.process.wait()
        original_submit(self, frame)

    with tempfile.TemporaryDirectory() as tmp:
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(StreamingEncoder, "submit", dying_submit)
            with pytest.raises(EncodingError):
                _small_renderer(tmp).render_sync(_png_bytes(320, 180), ["问题一", "问题二"])
        assert list(Path(tmp).iterdir()) == []
    print("✓ EncodingError raised and the export directory removed")


def test_delivery_and_draw_failures():
    """Errors moving the file into place or drawing a frame become EncodingError."""

    print()
    print("=" * 60)
    print("TEST: Delivery and Drawing Failures")
    print("=" * 60)

    if not _vp9_available():
        pytest.skip("FFmpeg with libvpx-vp9 not available")

    def failing_replace(src, dst):
        raise OSError("cross-device link")

    def failing_draw(self, caption_index, opacity):
        raise OSError("image file is truncated")

    with tempfile.TemporaryDirectory() as tmp:
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(render_module.os, "replace", failing_replace)
            with pytest.raises(EncodingError, match="cross-device link"):
                _small_renderer(tmp).render_sync(_png_bytes(320, 180), ["问题一"])
        assert list(Path(tmp).iterdir()) == []
        print("  ✓ os.replace failure")

        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(RenderSession, "draw_frame", failing_draw)
            with pytest.raises(EncodingError, match="truncated"):
                _small_renderer(tmp).render_sync(_png_bytes(320, 180), ["问题一"])
        assert list(Path(tmp).iterdir()) == []
        print("  ✓ Drawing failure")
    print("✓ Both wrapped as EncodingError and nothing left behind")


if __name__ == "__main__":
    print("\n" + "=" * 60)
    print(" CAPTION VIDEO EXPORT TESTS")
    print("=" * 60 + "\n")

    tests = [
        test_caption_opacity,
        test_frame_size,
        test_wrap_caption,
        test_layout_caption,
        test_load_image,
        test_session_slides,
        test_session_no_captions,
        test_session_clock_jump,
        test_bad_image_leaves_no_file,
        test_unsupported_codec,
        test_encoder_not_started,
        test_export_video,
        test_export_no_captions,
        test_encoder_dies_mid_render,
        test_delivery_and_draw_failures,
    ]
    failed = 0
    for test in tests:
        try:
            test()
        except pytest.skip.Exception as e:
            print(f"⚠ Skipped {test.__name__}: {e}")
        except AssertionError as e:
            print(f"✗ {test.__name__} failed: {e}")
            failed += 1

    print("\n" + "=" * 60)
    print(" FINAL RESULT")
    print("=" * 60)

    if failed == 0:
        print("\n✅ ALL TESTS PASSED\n")
        sys.exit(0)
    else:
        print(f"\n❌ {failed} TEST(S) FAILED\n")
        sys.exit(1)
