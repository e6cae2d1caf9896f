"""Plan summaries and diagnostic records."""

from typing import Any, Dict, Iterable, List, Optional

from .diagnostics import Diagnostic
from .generator import Expansion
from .plan import CapturePlan


def format_plan_summary(plan: CapturePlan, expansion: Optional[Expansion] = None) -> str:
    """Format a human-readable summary of a capture plan."""
    spec = plan.spec
    lines = [f"Capture Plan: {spec.entry_point}!", "=" * 50, ""]
    lines.append(f"Strict: {'yes' if plan.strict else 'no'}")
    lines.append(f"Closure: {plan.body.source}")
    lines.append("")

    lines.append(f"Captures ({len(spec.captures)}):")
    lines.append("-" * 30)
    for index, entry in enumerate(spec.captures, start=1):
        lines.append(f"  {index}. {entry.identifier:<16} {entry.mode.value:<6} {entry.source_expression}")
    lines.append("")

    lines.append(f"Duplication obligations: {', '.join(plan.duplication_obligations) or '-'}")
    lines.append(f"Relocations: {', '.join(plan.relocations) or '-'}")
    if plan.implicit:
        lines.append(f"Implicit (all): {', '.join(plan.implicit)}")

    if expansion is not None:
        lines.append("")
        lines.append("Expansion:")
        lines.append(f"  {expansion.expression.strip()}")
        if expansion.relocation_statement:
            lines.append(f"  then: {expansion.relocation_statement}")

    return "\n".join(lines)


def diagnostics_to_records(
    diagnostics: Iterable[Diagnostic], filename: Optional[str] = None
) -> List[Dict[str, Any]]:
    """Flatten diagnostics into JSON-ready dicts, one per diagnostic."""
    records = []
    for diagnostic in diagnostics:
        record = diagnostic.to_dict()
        if filename is not None:
            record["file"] = filename
        records.append(record)
    return records
