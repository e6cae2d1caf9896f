"""Pytest configuration and shared fixtures for closure-captures tests."""

import sys
from pathlib import Path

import pytest

# Add package to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from closure_captures.core.capture import CaptureCompiler, CaptureConfig
from tests.fixtures import CLONE_AND_MOVE, MULTIPLE_ERRORS


# ============================================================================
# Compiler Fixtures
# ============================================================================


@pytest.fixture
def compiler() -> CaptureCompiler:
    """Compiler with the default configuration."""
    return CaptureCompiler()


@pytest.fixture
def unchecked_compiler() -> CaptureCompiler:
    """Compiler that does not compile() its output."""
    return CaptureCompiler(CaptureConfig(verify_output=False))


# ============================================================================
# File Fixtures
# ============================================================================


@pytest.fixture
def clean_module(tmp_path) -> Path:
    """Module whose invocations all expand."""
    path = tmp_path / "clean.py"
    path.write_text(CLONE_AND_MOVE, encoding="utf-8")
    return path


@pytest.fixture
def broken_module(tmp_path) -> Path:
    """Module with a duplicate capture and a strict isolation failure."""
    path = tmp_path / "broken.py"
    path.write_text(MULTIPLE_ERRORS, encoding="utf-8")
    return path


@pytest.fixture
def sample_capture_config(tmp_path) -> Path:
    """Create sample capture configuration file."""
    import yaml

    config = {
        "entry_points": {
            "borrow": {"default_mode": "ref"},
            "capture_only": {"strict": True, "default_mode": "ref"},
        },
        "preserve_line_numbers": False,
    }

    path = tmp_path / "captures.yaml"
    with open(path, "w") as f:
        yaml.dump(config, f)

    return path
