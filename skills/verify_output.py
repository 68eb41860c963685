"""
Export Verification - ffprobe checks for exported practice videos.

Confirms an export is a real, playable WebM/VP9 file with the expected frame
size and a duration of (captions + 1) slides.
"""

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class VerificationResult:
    """Result of video verification checks."""
    passed: bool
    checks: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)
    actual_duration: float = 0.0
    actual_width: int = 0
    actual_height: int = 0
    codec_name: str = ""
    format_name: str = ""
    has_video: bool = False
    has_audio: bool = False
    file_size_bytes: int = 0


def ffprobe_available() -> bool:
    return shutil.which("ffprobe") is not None


def _probe(path: Path) -> dict:
    cmd = [
        "ffprobe", "-v", "error",
        "-show_entries", "stream=width,height,codec_type,codec_name",
        "-show_entries", "format=duration,format_name",
        "-of", "json",
        str(path),
    ]
    probe = subprocess.run(cmd, capture_output=True, text=True, check=True)
    return json.loads(probe.stdout)


def verify_video(
    path: Path,
    expected_duration: Optional[float] = None,
    expected_width: Optional[int] = None,
    expected_height: Optional[int] = None,
    expected_codec: Optional[str] = "vp9",
    expected_format: Optional[str] = "webm",
    min_file_size: int = 1_000,
    duration_tolerance: float = 0.1,
) -> VerificationResult:
    """
    Verify an exported video via ffprobe.

    Args:
        path: Path to video file
        expected_duration: Expected duration in seconds (checked with tolerance)
        expected_width: Expected pixel width
        expected_height: Expected pixel height
        expected_codec: Video codec name as ffprobe reports it
        expected_format: Container name that must appear in format_name
        min_file_size: Minimum file size in bytes
        duration_tolerance: Allowed deviation in seconds

    Returns:
        VerificationResult with pass/fail and details
    """
    result = VerificationResult(passed=True)
    path = Path(path)

    # Check 1: File exists
    if not path.exists():
        result.passed = False
        result.failures.append(f"File not found: {path}")
        return result
    result.checks.append("file_exists")

    # Check 2: File size
    result.file_size_bytes = path.stat().st_size
    if result.file_size_bytes < min_file_size:
        result.passed = False
        result.failures.append(
            f"File too small: {result.file_size_bytes} bytes (min {min_file_size})"
        )
    else:
        result.checks.append(f"file_size={result.file_size_bytes}")

    # Check 3: Probe with ffprobe
    try:
        data = _probe(path)
    except (subprocess.CalledProcessError, json.JSONDecodeError, FileNotFoundError) as e:
        result.passed = False
        result.failures.append(f"ffprobe failed: {e}")
        return result

    streams = data.get("streams", [])
    fmt = data.get("format", {})

    video_streams = [s for s in streams if s.get("codec_type") == "video"]
    audio_streams = [s for s in streams if s.get("codec_type") == "audio"]
    result.has_video = len(video_streams) > 0
    result.has_audio = len(audio_streams) > 0
    result.format_name = fmt.get("format_name", "")

    # Check 4: Video stream exists
    if not result.has_video:
        result.passed = False
        result.failures.append("No video stream found")
        return result
    result.checks.append("has_video_stream")

    vs = video_streams[0]
    result.actual_width = int(vs.get("width", 0))
    result.actual_height = int(vs.get("height", 0))
    result.codec_name = vs.get("codec_name", "")
    result.actual_duration = float(fmt.get("duration", 0) or 0)

    # Check 5: Codec and container
    if expected_codec and result.codec_name != expected_codec:
        result.passed = False
        result.failures.append(f"Codec mismatch: expected {expected_codec}, got {result.codec_name}")
    elif expected_codec:
        result.checks.append(f"codec={result.codec_name}")

    if expected_format and expected_format not in result.format_name.split(","):
        result.passed = False
        result.failures.append(f"Container mismatch: expected {expected_format}, got {result.format_name}")
    elif expected_format:
        result.checks.append(f"format={expected_format}")

    # Check 6: Duration within tolerance
    if expected_duration is not None:
        diff = abs(result.actual_duration - expected_duration)
        if diff > duration_tolerance:
            result.passed = False
            result.failures.append(
                f"Duration mismatch: expected {expected_duration:.2f}s, "
                f"got {result.actual_duration:.2f}s (tolerance {duration_tolerance}s)"
            )
        else:
            result.checks.append(f"duration={result.actual_duration:.2f}s")

    # Check 7: Resolution match
    if expected_width is not None and expected_height is not None:
        if result.actual_width != expected_width or result.actual_height != expected_height:
            result.passed = False
            result.failures.append(
                f"Resolution mismatch: expected {expected_width}x{expected_height}, "
                f"got {result.actual_width}x{result.actual_height}"
            )
        else:
            result.checks.append(f"resolution={result.actual_width}x{result.actual_height}")

    if result.passed:
        logger.info(f"Verification PASSED: {path.name} ({', '.join(result.checks)})")
    else:
        logger.warning(f"Verification FAILED: {path.name}: {result.failures}")

    return result
