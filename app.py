"""Streamlit web application for generating measures from DAX functions."""

import logging
import queue
from pathlib import Path

import streamlit as st

from src.errors import OperationCancelled, SelectionError
from src.formatting.dax_formatter import get_formatter
from src.generators.audit import audit_metadata
from src.generators.measure_generator import MeasureGenerator
from src.generators.naming import annotated_measure_name
from src.generators.synthesizer import ASK_SUFFIX, EXCLUDE_FROM_NAME
from src.parsers.function_parser import count_function_parameters
from src.parsers.pbip_parser import detect_input_type, load_model
from src.prompts.prompter import ScriptedPrompter
from src.utils.settings import AppSettings, load_settings, save_settings

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Power BI Measure Generator",
    page_icon=":bar_chart:",
    layout="wide",
)

# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------
if "settings" not in st.session_state:
    st.session_state.settings = load_settings()
if "run_stats" not in st.session_state:
    st.session_state.run_stats = None
if "run_rows" not in st.session_state:
    st.session_state.run_rows = []
if "run_messages" not in st.session_state:
    st.session_state.run_messages = []
if "run_log" not in st.session_state:
    st.session_state.run_log = []


# ---------------------------------------------------------------------------
# Logging bridge
# ---------------------------------------------------------------------------
class QueueLogHandler(logging.Handler):
    def __init__(self, log_queue: queue.Queue):
        super().__init__()
        self.log_queue = log_queue

    def emit(self, record):
        try:
            self.log_queue.put(self.format(record))
        except Exception:
            self.handleError(record)


_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _drain(log_queue: queue.Queue) -> list[str]:
    lines = []
    while not log_queue.empty():
        lines.append(log_queue.get_nowait())
    return lines


# ---------------------------------------------------------------------------
# UI
# ---------------------------------------------------------------------------
st.title("Power BI Measure Generator")
st.caption("Create measures by applying DAX user-defined functions to your base measures")

settings: AppSettings = st.session_state.settings

with st.sidebar:
    st.header("Settings")
    settings.local_function_prefix = st.text_input(
        "Single-parameter function prefix", value=settings.local_function_prefix,
    )
    settings.comparison_function_prefix = st.text_input(
        "Comparison function prefix", value=settings.comparison_function_prefix,
    )
    formatter_modes = ["local", "service", "none"]
    settings.dax_formatter = st.selectbox(
        "DAX formatting",
        formatter_modes,
        index=formatter_modes.index(settings.dax_formatter) if settings.dax_formatter in formatter_modes else 0,
        help="'service' uses daxformatter.com and falls back to local formatting when unavailable.",
    )
    if st.button("Save Settings"):
        save_settings(settings)
        st.success("Saved!")

# -- Step 1: Select model ---------------------------------------------------
st.header("Step 1: Select Semantic Model")

model_input = st.text_input(
    "Path to PBIP file, semantic model folder, model.bim or definition/ folder",
    value=settings.last_model_path,
    placeholder=r"C:\path\to\project.pbip  or  C:\path\to\Model.SemanticModel",
)

model = None
if model_input:
    p = Path(model_input)
    if not p.exists():
        st.warning("Path not found")
    elif detect_input_type(p) == "unknown":
        st.warning("Could not detect a PBIP semantic model. Provide a .pbip, model.bim or TMDL folder.")
    else:
        try:
            model = load_model(p)
        except (OSError, ValueError) as e:
            st.error(f"Failed to read model: {e}")
        else:
            st.success(
                f"Loaded **{model.name}**: {len(model.tables)} tables, "
                f"{len(model.all_measures)} measures, {len(model.functions)} functions"
            )

if model is None:
    st.stop()

# -- Step 2: Choose what to create ------------------------------------------
st.header("Step 2: Measures and Functions")

variant = st.radio(
    "Generate",
    ["One measure per base measure and function", "Comparison of two measures"],
    horizontal=True,
)
comparison = variant.startswith("Comparison")
prefix = settings.comparison_function_prefix if comparison else settings.local_function_prefix
parameter_count = 2 if comparison else 1

measure_options = {m.dax_object_full_name: m for m in model.all_measures}
chosen_refs = st.multiselect(
    "Base measures" + (" (exactly two; the first receives the new measures)" if comparison else ""),
    list(measure_options.keys()),
    max_selections=2 if comparison else None,
)

eligible = sorted(
    (f for f in model.functions
     if f.name.startswith(prefix) and count_function_parameters(f.expression) == parameter_count),
    key=lambda f: f.name,
)
if not eligible:
    st.warning(f"No {prefix} functions with exactly {parameter_count} parameter(s) found in the model.")
chosen_function_names = st.multiselect(
    f"{prefix} functions ({len(eligible)} available)",
    [f.name for f in eligible],
)
chosen_functions = [f for f in eligible if f.name in chosen_function_names]

# -- Step 3: Naming ------------------------------------------------------------
texts: dict[str, str] = {}
naming_mode = ASK_SUFFIX
if not comparison and chosen_functions:
    unannotated = [f for f in chosen_functions if annotated_measure_name(f, "") is None]
    if unannotated:
        st.header("Step 3: Measure Names")
        naming_label = st.radio(
            "Functions without MeasurePrefix/MeasureSuffix annotations",
            ["Enter a suffix per function", "Remove text from the function name"],
            horizontal=True,
        )
        if naming_label.startswith("Enter"):
            for f in unannotated:
                texts[f.name] = st.text_input(f"Suffix for {f.name}", value=f.name, key=f"suffix_{f.name}")
        else:
            naming_mode = EXCLUDE_FROM_NAME
            # Every function is asked with the prefix as default, and
            # ScriptedPrompter keys answers by default, so one answer serves all.
            texts[prefix] = st.text_input("Text to remove from function names", value=prefix)

# -- Metadata check ------------------------------------------------------------
continue_with_missing = True
chosen_measures = [measure_options[r] for r in chosen_refs]
if chosen_measures and chosen_functions:
    report = audit_metadata(chosen_measures, chosen_functions, accept_format_expression=not comparison)
    if report.has_issues:
        st.warning(report.message())
        continue_with_missing = st.checkbox("Continue anyway and review the created measures afterwards")

dry_run = st.checkbox("Dry run (do not write the model)")

st.divider()

ready = bool(chosen_measures) and bool(chosen_functions) and continue_with_missing
if comparison and len(chosen_measures) != 2:
    ready = False
run = st.button("Create Measures", type="primary", disabled=not ready)

if run:
    settings.last_model_path = model_input
    save_settings(settings)

    prompter = ScriptedPrompter(
        selection=chosen_function_names,
        texts=texts,
        confirm_answer=continue_with_missing,
    )
    generator = MeasureGenerator(
        prompter=prompter,
        formatter=get_formatter(settings.dax_formatter, settings.dax_formatter_url),
        local_prefix=settings.local_function_prefix,
        comparison_prefix=settings.comparison_function_prefix,
        dry_run=dry_run,
    )

    log_queue: queue.Queue = queue.Queue()
    handler = QueueLogHandler(log_queue)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(logging.INFO)

    st.session_state.run_stats = None
    st.session_state.run_rows = []
    try:
        with st.status("Creating measures...", expanded=True) as status:
            try:
                if comparison:
                    stats = generator.create_comparison_measures(model_input, chosen_refs, chosen_function_names)
                else:
                    stats = generator.create_measures(
                        model_input, chosen_refs, chosen_function_names, naming_mode=naming_mode,
                    )
            except (SelectionError, FileNotFoundError, ValueError) as e:
                status.update(label="Failed!", state="error")
                st.error(str(e))
            except OperationCancelled as e:
                status.update(label="Cancelled", state="error")
                st.warning(str(e))
            else:
                status.update(label="Done!", state="complete")
                st.session_state.run_stats = stats
                st.session_state.run_rows = [
                    {
                        "Measure": m.name,
                        "Table": m.table,
                        "Expression": " ".join(m.expression.split()),
                        "Display Folder": m.display_folder,
                        "Format": m.format_string,
                        "Description": m.description,
                    }
                    for m in generator.result.created
                ]
            st.session_state.run_messages = prompter.messages
            st.session_state.run_log = _drain(log_queue)
            if st.session_state.run_log:
                st.code("\n".join(st.session_state.run_log[-60:]))
    finally:
        root.removeHandler(handler)

# -- Results -------------------------------------------------------------------
if st.session_state.run_stats:
    st.header("Results")
    stats = st.session_state.run_stats
    cols = st.columns(len(stats))
    for col, (key, val) in zip(cols, stats.items()):
        col.metric(key.replace("_", " ").title(), val)

    if st.session_state.run_rows:
        st.dataframe(st.session_state.run_rows, use_container_width=True)

    for title, message in st.session_state.run_messages:
        if title != "Missing Metadata":
            st.info(f"**{title}**\n\n{message}")
