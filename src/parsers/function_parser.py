"""Parameter counting for DAX user-defined function declarations.

A function expression looks like::

    (baseMeasure: anyref, periods: int64 = 1) => CALCULATE(baseMeasure, ...)

The parameter list is taken between the first ``(`` and the first ``)``
that is followed by ``=>``. Typed parameters are counted by their colons,
untyped ones by their commas. Nested parentheses and commas inside default
values are not understood, and an expression without a ``) =>`` sequence
counts as zero parameters. Function selection filters on the exact count
this returns, so those limitations are kept as they are.
"""

import logging

logger = logging.getLogger(__name__)


def count_function_parameters(expression: str | None) -> int:
    """Count the parameters declared by a DAX function expression."""
    if not expression or not expression.strip():
        return 0

    open_index = expression.find("(")
    if open_index == -1:
        return 0

    close_index = -1
    for i in range(open_index + 1, len(expression) - 2):
        if expression[i] == ")" and expression[i + 1:].lstrip().startswith("=>"):
            close_index = i
            break

    if close_index == -1:
        logger.debug("No ') =>' found in function expression, counting 0 parameters")
        return 0

    section = expression[open_index + 1:close_index].strip()
    if not section:
        return 0

    colon_count = section.count(":")
    if colon_count > 0:
        return colon_count

    cleaned = _strip_line_comments(section)
    if not cleaned:
        return 0

    comma_count = cleaned.count(",")
    return comma_count + 1 if comma_count > 0 else 1


def _strip_line_comments(section: str) -> str:
    """Drop // comments and join the remaining non-empty lines with spaces."""
    lines = []
    for line in section.split("\n"):
        clean = line.strip()
        if clean.startswith("//"):
            continue
        comment_index = clean.find("//")
        if comment_index >= 0:
            clean = clean[:comment_index].strip()
        if clean:
            lines.append(clean)
    return " ".join(lines).strip()
