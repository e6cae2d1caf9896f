"""Configuration for capture compilation."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml

from .model import CaptureMode

_DEFAULT_MODES = {CaptureMode.MOVE, CaptureMode.DUPLICATE, CaptureMode.REFERENCE}


@dataclass
class EntryPoint:
    """How one invocation name behaves.

    Attributes
    ----------
    name : str
        Name written before the `!` (e.g. "capture")
    strict : bool
        Only declared captures are visible inside the closure
    default_mode : CaptureMode
        Mode of a bare identifier in the capture list
    """

    name: str
    strict: bool = False
    default_mode: CaptureMode = CaptureMode.MOVE

    def __post_init__(self):
        self.default_mode = CaptureMode(self.default_mode)
        if self.default_mode not in _DEFAULT_MODES:
            raise ValueError(
                f"Entry point '{self.name}': default_mode must be one of "
                f"move, clone, ref (got '{self.default_mode.value}')"
            )
        if not self.name.isidentifier():
            raise ValueError(f"Entry point name is not an identifier: {self.name!r}")


def _default_entry_points() -> Dict[str, EntryPoint]:
    return {
        "capture": EntryPoint("capture", strict=False, default_mode=CaptureMode.MOVE),
        "capture_only": EntryPoint(
            "capture_only", strict=True, default_mode=CaptureMode.DUPLICATE
        ),
    }


@dataclass
class CaptureConfig:
    """Configuration for capture compilation.

    Example YAML::

        entry_points:
          capture: {strict: false, default_mode: move}
          capture_only: {strict: true, default_mode: clone}
          borrow: {default_mode: ref}
        runtime_module: closure_captures
        preserve_line_numbers: true
        verify_output: true
    """

    entry_points: Dict[str, EntryPoint] = field(default_factory=_default_entry_points)
    runtime_module: str = "closure_captures"  # Provides duplicate() to generated code
    preserve_line_numbers: bool = True  # Pad expansions to the invocation's line count
    verify_output: bool = True  # compile() expanded modules before returning them

    def entry_point(self, name: str) -> EntryPoint:
        if name not in self.entry_points:
            known = ", ".join(sorted(self.entry_points))
            raise ValueError(f"Unknown entry point '{name}' (known: {known})")
        return self.entry_points[name]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CaptureConfig":
        """Build a config; entry points given here are added to the defaults."""
        data = dict(data or {})
        entry_points = _default_entry_points()
        for name, options in (data.pop("entry_points", None) or {}).items():
            entry_points[name] = EntryPoint(name=name, **(options or {}))

        unknown = set(data) - {"runtime_module", "preserve_line_numbers", "verify_output"}
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(entry_points=entry_points, **data)

    @classmethod
    def from_yaml(cls, path: Path) -> "CaptureConfig":
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)
