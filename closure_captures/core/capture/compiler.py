"""Main capture compiler class."""

import logging
from pathlib import Path
from typing import List, Optional

from .config import CaptureConfig
from .diagnostics import CaptureError, Diagnostic, SourceText
from .generator import CodeGenerator, Expansion
from .model import ClosureSpec
from .parser import CaptureParser
from .plan import CapturePlan, build_plan
from .scope import ScopeInfo, check_isolation
from .source import SourceExpander


class CaptureCompiler:
    """Compiles capture invocations into plain Python expressions.

    Parameters
    ----------
    config : CaptureConfig, optional
        Compiler configuration
    logger : logging.Logger, optional
        Logger instance
    """

    def __init__(
        self,
        config: Optional[CaptureConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or CaptureConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.generator = CodeGenerator(runtime_module=self.config.runtime_module)

    def parse(
        self,
        text: str,
        entry_point: str = "capture",
        filename: str = "<capture>",
        line: int = 1,
        column: int = 0,
    ) -> ClosureSpec:
        """Parse the text between an invocation's parentheses."""
        options = self.config.entry_point(entry_point)
        parser = CaptureParser(
            SourceText(text, filename, line, column),
            default_mode=options.default_mode,
            strict=options.strict,
            entry_point=entry_point,
        )
        return parser.parse()

    def plan(self, spec: ClosureSpec) -> CapturePlan:
        return build_plan(spec)

    def expand(
        self,
        text: str,
        entry_point: str = "capture",
        scope: Optional[ScopeInfo] = None,
        filename: str = "<capture>",
        line: int = 1,
        column: int = 0,
    ) -> Expansion:
        """
        Compile one invocation.

        Parameters
        ----------
        text : str
            Text between the invocation's parentheses
        entry_point : str
            Name the invocation was written with
        scope : ScopeInfo, optional
            Names visible at the invocation
        filename, line, column
            Where *text* starts, for diagnostics

        Returns
        -------
        Expansion
            Generated expression and the names it moves

        Raises
        ------
        CaptureError
            Subclass describing the first failing stage
        """
        spec = self.parse(text, entry_point, filename, line, column)
        plan = self.plan(spec)
        if plan.strict:
            check_isolation(plan, scope)

        newlines = text.count("\n") if self.config.preserve_line_numbers else 0
        expansion = self.generator.generate(plan, scope=scope, newlines=newlines)
        self.logger.debug(
            f"{filename}:{line}: {entry_point}! with {len(spec.captures)} capture(s)"
            + (f", relocating {', '.join(expansion.relocations)}" if expansion.relocations else "")
        )
        return expansion

    def expand_source(self, source: str, filename: str = "<string>") -> str:
        """Expand every invocation in a module's source."""
        return SourceExpander(self, logger=self.logger).expand(source, filename)

    def check_source(self, source: str, filename: str = "<string>") -> List[Diagnostic]:
        """Return the diagnostics for a module; empty if it expands cleanly."""
        try:
            self.expand_source(source, filename)
        except CaptureError as exc:
            return list(exc.diagnostics)
        return []

    def expand_file(self, input_path: Path, output_path: Optional[Path] = None) -> str:
        """Load, expand, and optionally save a module."""
        input_path = Path(input_path)
        with open(input_path, "r", encoding="utf-8") as f:
            source = f.read()

        expanded = self.expand_source(source, str(input_path))

        if output_path is not None:
            with open(output_path, "w", encoding="utf-8") as f:
                f.write(expanded)
            self.logger.info(f"Expanded {input_path} -> {output_path}")
        return expanded


def expand_capture(text: str, entry_point: str = "capture", **config_kwargs) -> Expansion:
    """Convenience function to compile one invocation."""
    config = CaptureConfig(**config_kwargs)
    return CaptureCompiler(config).expand(text, entry_point=entry_point)


def expand_source(source: str, filename: str = "<string>", **config_kwargs) -> str:
    """Convenience function to expand a module's source."""
    config = CaptureConfig(**config_kwargs)
    return CaptureCompiler(config).expand_source(source, filename)
