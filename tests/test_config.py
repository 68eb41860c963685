"""
Test: Configuration Loading

Verifies that:
1. Config module loads correctly
2. Environment variables are read
3. Model overrides work
4. Path and export settings are correct

Run: python tests/test_config.py
"""

import sys
import os
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


def test_config_loading():
    """Test configuration loading."""

    print("=" * 60)
    print("TEST: Configuration Loading")
    print("=" * 60)
    print()

    import config
    print("✓ Config module imported")

    # Test model configuration
    print()
    print("Model Configuration:")
    print("-" * 40)
    print(f"  GEMINI_MODEL: {config.GEMINI_MODEL}")
    print(f"  IMAGEN_MODEL: {config.IMAGEN_MODEL}")
    print(f"  TTS_MODEL: {config.TTS_MODEL}")
    assert config.GEMINI_MODEL and config.IMAGEN_MODEL and config.TTS_MODEL

    # Test API configuration
    print()
    print("API Configuration:")
    print("-" * 40)
    print(f"  GOOGLE_API_KEY: {'***' + config.GOOGLE_API_KEY[-4:] if config.GOOGLE_API_KEY else 'Not set'}")
    print(f"  USE_VERTEX_AI: {config.USE_VERTEX_AI}")
    print(f"  GOOGLE_CLOUD_PROJECT: {config.GOOGLE_CLOUD_PROJECT or 'Not set'}")

    if config.GOOGLE_API_KEY or config.USE_VERTEX_AI:
        print("✓ API credentials configured")
    else:
        print("⚠ No API credentials set (set GOOGLE_API_KEY or USE_VERTEX_AI)")

    # Test paths
    print()
    print("Path Configuration:")
    print("-" * 40)
    print(f"  PROJECT_ROOT: {config.PROJECT_ROOT}")
    print(f"  OUTPUT_DIR: {config.OUTPUT_DIR}")
    print(f"  SESSIONS_FILE: {config.SESSIONS_FILE}")

    assert config.PROJECT_ROOT.exists()
    assert config.SKILLS_DIR.exists()
    for directory in [config.PICTURES_DIR, config.EXPORTS_DIR, config.NARRATION_DIR]:
        assert directory.is_dir(), f"{directory} not created"
    print("✓ Directories exist")

    # Test export settings
    print()
    print("Export Settings:")
    print("-" * 40)
    print(f"  {config.VIDEO_EXPORT_WIDTH}px @ {config.VIDEO_EXPORT_FPS}fps, {config.VIDEO_CODEC}/{config.VIDEO_CONTAINER}")
    assert config.VIDEO_EXPORT_WIDTH == 1280
    assert config.VIDEO_EXPORT_FPS == 30
    assert config.SLIDE_DURATION_SECONDS == 4.0
    assert config.FADE_DURATION_SECONDS == 0.5
    assert config.OVERLAY_OPACITY == 0.5
    assert config.TERMINAL_CAPTION == "练习结束！"
    assert config.EXPORT_FILENAME.endswith(".webm")
    assert config.DEFAULT_DIFFICULTY in config.DIFFICULTIES
    print("✓ Export settings loaded")

    print()
    print("✅ Config loading test passed!")


def test_model_override():
    """Model names can be overridden from the environment."""

    print()
    print("=" * 60)
    print("TEST: Model Override")
    print("=" * 60)
    print()

    import importlib
    import config

    original = os.environ.get("GEMINI_MODEL")
    os.environ["GEMINI_MODEL"] = "gemini-2.5-pro"
    try:
        importlib.reload(config)
        print(f"GEMINI_MODEL=gemini-2.5-pro → Model: {config.GEMINI_MODEL}")
        assert config.GEMINI_MODEL == "gemini-2.5-pro"
    finally:
        if original is None:
            os.environ.pop("GEMINI_MODEL", None)
        else:
            os.environ["GEMINI_MODEL"] = original
        importlib.reload(config)

    print("✅ Model override test passed!")


def test_client_requires_credentials():
    """Without credentials get_gemini_client() explains what to set."""
    import config

    saved = (config.USE_VERTEX_AI, config.GOOGLE_API_KEY, config.GOOGLE_CLOUD_PROJECT)
    try:
        config.USE_VERTEX_AI, config.GOOGLE_API_KEY = False, None
        with pytest.raises(ValueError, match="GOOGLE_API_KEY"):
            config.get_gemini_client()

        config.USE_VERTEX_AI, config.GOOGLE_CLOUD_PROJECT = True, None
        with pytest.raises(ValueError, match="GOOGLE_CLOUD_PROJECT"):
            config.get_gemini_client()
    finally:
        config.USE_VERTEX_AI, config.GOOGLE_API_KEY, config.GOOGLE_CLOUD_PROJECT = saved
    print("✓ Missing credentials raise ValueError")


if __name__ == "__main__":
    print("\n" + "=" * 60)
    print(" CONFIGURATION TESTS")
    print("=" * 60 + "\n")

    os.chdir(Path(__file__).parent.parent)

    failed = 0
    for test in [test_config_loading, test_model_override, test_client_requires_credentials]:
        try:
            test()
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
        print("\n❌ SOME TESTS FAILED\n")
        sys.exit(1)
