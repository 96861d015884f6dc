"""Resolve which measures and functions a run works on."""

import logging
import re
from dataclasses import dataclass, field

from ..errors import OperationCancelled, SelectionError
from ..models import Function, Measure, SemanticModel
from ..parsers.function_parser import count_function_parameters

logger = logging.getLogger(__name__)

_MEASURE_REF_RE = re.compile(
    r"^(?:'(?P<quoted_table>(?:[^']|'')+)'|(?P<table>[^\[\]']+?))?\s*\[(?P<measure>(?:[^\]]|\]\])+)\]$"
)

_COUNT_WORDS = {1: "one", 2: "two"}


@dataclass
class Selection:
    """Measures and functions picked by the user, in the order picked."""
    measures: list[Measure] = field(default_factory=list)
    functions: list[Function] = field(default_factory=list)

    @property
    def only_measures(self) -> bool:
        return bool(self.measures) and not self.functions


def parse_measure_ref(ref: str) -> tuple[str | None, str]:
    """Split 'Table'[Measure], Table[Measure], [Measure] or Measure into (table, measure)."""
    ref = ref.strip()
    match = _MEASURE_REF_RE.match(ref)
    if not match:
        return None, ref
    table = match.group("quoted_table")
    if table is not None:
        table = table.replace("''", "'")
    else:
        table = (match.group("table") or "").strip() or None
    return table, match.group("measure").replace("]]", "]")


def build_selection(
    model: SemanticModel,
    measure_refs: list[str],
    function_names: list[str] | None = None,
) -> Selection:
    """Look up referenced measures and functions in the model."""
    selection = Selection()

    for ref in measure_refs:
        table, name = parse_measure_ref(ref)
        matches = model.find_measures(name, table)
        if not matches:
            raise SelectionError(f"Measure not found: {ref}")
        if len(matches) > 1:
            tables = ", ".join(sorted(m.table for m in matches))
            raise SelectionError(f"Measure name '{name}' is ambiguous (tables: {tables}). Use Table[Measure].")
        if matches[0] not in selection.measures:
            selection.measures.append(matches[0])

    for name in function_names or []:
        function = model.get_function(name)
        if function is None:
            raise SelectionError(f"Function not found: {name}")
        if function not in selection.functions:
            selection.functions.append(function)

    return selection


def require_measure_count(selection: Selection, count: int) -> None:
    if len(selection.measures) != count:
        raise SelectionError(f"You must select exactly {_COUNT_WORDS.get(count, count)} measures!")


def resolve_functions(
    model: SemanticModel,
    selection: Selection,
    prompter,
    prefix: str,
    parameter_count: int,
) -> list[Function]:
    """Return the functions to apply.

    With only measures selected, every model function named ``prefix...``
    declaring exactly ``parameter_count`` parameters is offered in a
    multi-select dialog. Otherwise the selected functions are filtered the
    same way.

    Raises:
        SelectionError: Nothing usable is selected or available.
        OperationCancelled: The selection dialog was cancelled.
    """
    count_word = _COUNT_WORDS.get(parameter_count, str(parameter_count))
    plural = "parameter" if parameter_count == 1 else "parameters"

    if not selection.measures:
        raise SelectionError("No measures selected.")

    def eligible(function: Function) -> bool:
        return function.name.startswith(prefix) and count_function_parameters(function.expression) == parameter_count

    if selection.only_measures:
        if not model.functions:
            raise SelectionError("No functions found in the model.")
        prefixed = [f for f in model.functions if f.name.startswith(prefix)]
        if not prefixed:
            raise SelectionError(f"No {prefix} functions found in the model.")
        candidates = sorted((f for f in prefixed if eligible(f)), key=lambda f: f.name)
        if not candidates:
            raise SelectionError(
                f"Found {len(prefixed)} {prefix} functions, but none have exactly {count_word} input {plural}."
            )

        logger.info(f"{len(candidates)} {prefix} functions with {count_word} {plural} available")
        chosen = prompter.request_selection(
            f"Select one or more {count_word}-parameter {prefix} functions ({len(candidates)} available):",
            [f.name for f in candidates],
        )
        if chosen is None:
            raise OperationCancelled("Function selection cancelled.")
        functions = [f for f in candidates if f.name in chosen]
    else:
        functions = [f for f in selection.functions if eligible(f)]
        if not functions:
            raise SelectionError(
                f"None of the selected functions are {prefix} functions with exactly {count_word} input {plural}."
            )

    if not functions:
        raise SelectionError(f"No {count_word}-parameter functions selected.")

    logger.info(f"Using functions: {', '.join(f.name for f in functions)}")
    return functions
