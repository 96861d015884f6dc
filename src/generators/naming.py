"""Naming, folder, format string and description rules for generated measures."""

from ..models import AnnotationKey, Function, Measure

PERCENT_FORMAT = "#,0.0%;-#,0.0%;#,0.0%"

_PERCENT_MARKERS = ("%", "PCT", "IDX", "INDEX")
_CHANGE_MARKERS = ("pct", "idx", "index")


def _trim_name(text: str) -> str:
    return text.strip(" '")


def is_percentage_function(function_name: str) -> bool:
    upper = function_name.upper()
    return any(marker in upper for marker in _PERCENT_MARKERS)


def build_expression(function_name: str, *measures: Measure) -> str:
    """DAX call of the function on the measure references, before formatting."""
    return f"{function_name}({','.join(m.dax_object_name for m in measures)})"


# ---------------------------------------------------------------------------
# Format strings
# ---------------------------------------------------------------------------

def derive_format_string(function: Function, base: Measure) -> str:
    """Annotation wins, then the percentage pattern, then the base measure's format."""
    annotated = function.get_annotation(AnnotationKey.FORMAT_STRING)
    if annotated:
        return annotated
    if is_percentage_function(function.name):
        return PERCENT_FORMAT
    return base.format_string


def derive_format_string_expression(function: Function, base: Measure) -> str:
    annotated = function.get_annotation(AnnotationKey.FORMAT_STRING_EXPRESSION)
    if annotated:
        return annotated
    return base.format_string_expression


# ---------------------------------------------------------------------------
# Single-parameter functions
# ---------------------------------------------------------------------------

def annotated_measure_name(function: Function, base_name: str) -> str | None:
    """Name from MeasurePrefix/MeasureSuffix annotations, or None when neither is set."""
    prefix = function.get_annotation(AnnotationKey.MEASURE_PREFIX)
    suffix = function.get_annotation(AnnotationKey.MEASURE_SUFFIX)
    if not prefix and not suffix:
        return None
    head = _trim_name(prefix) + " " if prefix else ""
    tail = " " + _trim_name(suffix) if suffix else ""
    return _trim_name(head + base_name + tail)


def suffixed_measure_name(base_name: str, suffix: str | None) -> str:
    if not suffix or not suffix.strip():
        return _trim_name(base_name)
    return _trim_name(f"{base_name} {suffix}")


def suffix_from_function_name(function_name: str, excluded: str | None) -> str:
    """Function name with the excluded text removed, e.g. Local_PY minus 'Local_' -> 'PY'."""
    if excluded:
        function_name = function_name.replace(excluded, "")
    return function_name.strip(" _")


def derive_display_folder(function: Function, base: Measure) -> str:
    """Folder below the base measure's folder, named after the base measure."""
    folder = f"{base.display_folder}\\{base.name}" if base.display_folder else base.name
    prefix = function.get_annotation(AnnotationKey.FOLDER_PREFIX)
    suffix = function.get_annotation(AnnotationKey.FOLDER_SUFFIX)
    if not prefix and not suffix:
        return folder
    head = prefix.strip() + " " if prefix else ""
    tail = " - " + suffix.strip() if suffix else ""
    return (head + folder + tail).strip()


def function_description(function: Function) -> str:
    return function.get_annotation(AnnotationKey.DESCRIPTION) or function.description


def derive_single_description(function: Function, base: Measure) -> str:
    """'<measure description>, <function description>' when both exist, else empty."""
    func_desc = function_description(function)
    if not base.description.strip() or not (func_desc or "").strip():
        return ""
    return f"{base.description}, {func_desc}"


# ---------------------------------------------------------------------------
# Two-measure comparison functions
# ---------------------------------------------------------------------------

def comparison_measure_name(function_name: str, base_name: str) -> str:
    lower = function_name.lower()
    if function_name.endswith("Deviation"):
        return f"{base_name} Dev"
    if any(marker in lower for marker in _CHANGE_MARKERS):
        return f"{base_name} % change"
    name = function_name.replace("Comparison", "").strip()
    return name or function_name


def derive_comparison_description(function: Function, measure1: Measure, measure2: Measure) -> str:
    """Function description with the literal tokens measure1/measure2 replaced by full references."""
    description = function_description(function) or f"Comparison function {function.name}"
    description = description.replace("measure1", measure1.dax_object_full_name)
    return description.replace("measure2", measure2.dax_object_full_name)
