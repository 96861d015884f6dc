"""Check base measures and functions for missing format strings and descriptions."""

import logging
from dataclasses import dataclass, field

from ..errors import OperationCancelled
from ..models import Function, Measure

logger = logging.getLogger(__name__)


@dataclass
class MetadataReport:
    """Names of objects missing metadata, in selection order without repeats."""
    missing_format_string: list[str] = field(default_factory=list)
    missing_measure_description: list[str] = field(default_factory=list)
    missing_function_description: list[str] = field(default_factory=list)
    format_label: str = "FormatString"

    @property
    def has_issues(self) -> bool:
        return bool(
            self.missing_format_string
            or self.missing_measure_description
            or self.missing_function_description
        )

    def message(self) -> str:
        """Consolidated warning text with one bullet list per category."""
        text = (
            "Missing metadata detected:\n"
            "- Option 1: Press Cancel, fix items, then run script again\n"
            "- Option 2: Continue and validate created format string and descriptions\n"
        )
        sections = [
            (f"{self.format_label} missing in measures", self.missing_format_string),
            ("Description missing in measures", self.missing_measure_description),
            ("Description missing in functions", self.missing_function_description),
        ]
        for heading, names in sections:
            if names:
                text += f"\n• {heading}:\n"
                text += "".join(f"   - {name}\n" for name in names)
        return text


def _append_unique(items: list[str], name: str) -> None:
    if name not in items:
        items.append(name)


def audit_metadata(
    measures: list[Measure],
    functions: list[Function],
    accept_format_expression: bool = False,
) -> MetadataReport:
    """Collect measures without a format string or description and functions without a description.

    Args:
        measures: Selected base measures.
        functions: Functions about to be applied.
        accept_format_expression: Treat a dynamic format string expression as
            a valid substitute for a static format string.
    """
    report = MetadataReport(
        format_label="FormatString or FormatStringExpression" if accept_format_expression else "FormatString",
    )

    for m in measures:
        has_format = bool(m.format_string.strip())
        if accept_format_expression:
            has_format = has_format or bool(m.format_string_expression.strip())
        if not has_format:
            _append_unique(report.missing_format_string, m.name)
        if not m.description.strip():
            _append_unique(report.missing_measure_description, m.name)

    for f in functions:
        if not f.description.strip():
            _append_unique(report.missing_function_description, f.name)

    return report


def confirm_metadata(report: MetadataReport, prompter) -> None:
    """Ask whether to continue despite missing metadata.

    Raises:
        OperationCancelled: The user chose Cancel.
    """
    if not report.has_issues:
        return
    logger.warning(
        f"Missing metadata: {len(report.missing_format_string)} format strings, "
        f"{len(report.missing_measure_description)} measure descriptions, "
        f"{len(report.missing_function_description)} function descriptions"
    )
    if not prompter.confirm("Missing Metadata", report.message()):
        raise OperationCancelled("Cancelled because of missing metadata.")
