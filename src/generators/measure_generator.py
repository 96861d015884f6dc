"""Main measure generator: orchestrates model loading, selection, audit and synthesis."""

import logging
from datetime import datetime, timezone
from pathlib import Path

from ..formatting.dax_formatter import LocalDaxFormatter
from ..models import SemanticModel
from ..parsers.pbip_parser import PBIPParser
from ..utils.markdown import MarkdownHelper as md
from ..writers.pbip_writer import PBIPWriter
from .audit import audit_metadata, confirm_metadata
from .selection import build_selection, require_measure_count, resolve_functions
from .synthesizer import ASK_SUFFIX, MeasureSynthesizer, SynthesisResult

logger = logging.getLogger(__name__)


class MeasureGenerator:
    """Generates derived measures in a PBIP semantic model from DAX functions."""

    def __init__(
        self,
        prompter,
        formatter=None,
        local_prefix: str = "Local",
        comparison_prefix: str = "Comparison",
        dry_run: bool = False,
    ):
        """
        Args:
            prompter: Dialogs for function selection, suffixes and warnings.
            formatter: DAX formatter; defaults to LocalDaxFormatter.
            local_prefix: Name prefix of single-parameter functions.
            comparison_prefix: Name prefix of two-parameter comparison functions.
            dry_run: Create measures in memory only, without writing files.
        """
        self.prompter = prompter
        self.formatter = formatter or LocalDaxFormatter()
        self.local_prefix = local_prefix
        self.comparison_prefix = comparison_prefix
        self.dry_run = dry_run

        # Populated after a run, read by reports and the Streamlit app
        self.model: SemanticModel | None = None
        self.result: SynthesisResult | None = None

    def create_measures(
        self,
        model_path: str | Path,
        measure_refs: list[str],
        function_names: list[str] | None = None,
        naming_mode: str = ASK_SUFFIX,
    ) -> dict:
        """Apply single-parameter functions to each selected measure.

        Args:
            model_path: Path to .pbip, semantic model directory, model.bim or definition/ folder.
            measure_refs: Base measures as Name, [Name] or Table[Name].
            function_names: Functions to apply; when empty the user picks from a list.
            naming_mode: 'ask_suffix' or 'exclude_from_name'.

        Returns:
            Dict with run statistics.

        Raises:
            SelectionError: The selection cannot be used.
            OperationCancelled: The user cancelled a dialog.
        """
        model = self._load(model_path)
        selection = build_selection(model, measure_refs, function_names)
        functions = resolve_functions(model, selection, self.prompter, self.local_prefix, 1)

        confirm_metadata(
            audit_metadata(selection.measures, functions, accept_format_expression=True),
            self.prompter,
        )

        synthesizer = MeasureSynthesizer(model, self.prompter, self.formatter)
        result = synthesizer.synthesize_single(
            selection.measures, functions, naming_mode, exclude_default=self.local_prefix
        )
        return self._finish(model, result, len(selection.measures), len(functions),
                            "The following measures already exist and were not created:\n\n",
                            "Existing Measures")

    def create_comparison_measures(
        self,
        model_path: str | Path,
        measure_refs: list[str],
        function_names: list[str] | None = None,
    ) -> dict:
        """Apply two-parameter comparison functions to exactly two selected measures.

        Raises:
            SelectionError: The selection cannot be used.
            OperationCancelled: The user cancelled a dialog.
        """
        model = self._load(model_path)
        selection = build_selection(model, measure_refs, function_names)
        require_measure_count(selection, 2)
        measure1, measure2 = selection.measures
        functions = resolve_functions(model, selection, self.prompter, self.comparison_prefix, 2)

        confirm_metadata(audit_metadata(selection.measures, functions), self.prompter)

        synthesizer = MeasureSynthesizer(model, self.prompter, self.formatter)
        result = synthesizer.synthesize_comparison(measure1, measure2, functions)
        return self._finish(model, result, 2, len(functions),
                            "The following measures already exist and were skipped:\n",
                            "Already Existing Measures")

    def _load(self, model_path: str | Path) -> SemanticModel:
        model_path = Path(model_path).resolve()
        if not model_path.exists():
            raise FileNotFoundError(f"Model path not found: {model_path}")
        return PBIPParser().parse(model_path)

    def _finish(
        self,
        model: SemanticModel,
        result: SynthesisResult,
        measure_count: int,
        function_count: int,
        skipped_header: str,
        skipped_title: str,
    ) -> dict:
        self.model = model
        self.result = result

        if self.dry_run:
            logger.info(f"Dry run: {len(result.created)} measures not written")
        else:
            PBIPWriter().save(model)

        if result.skipped:
            message = skipped_header + "".join(f" - {name}\n" for name in result.skipped)
            self.prompter.inform(skipped_title, message)

        logger.info(f"Created {len(result.created)} measures, skipped {len(result.skipped)}")
        return {
            "measures": measure_count,
            "functions": function_count,
            "created": len(result.created),
            "skipped": len(result.skipped),
        }

    def write_report(self, path: str | Path) -> Path:
        """Write a Markdown summary of the last run."""
        if self.model is None or self.result is None:
            raise RuntimeError("No run to report on. Call create_measures() first.")

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
        rows = [
            [
                m.name,
                m.table,
                md.code(" ".join(m.expression.split())),
                m.display_folder,
                m.format_string,
                m.description,
            ]
            for m in self.result.created
        ]
        parts = [
            md.heading(f"{self.model.name} - Generated Measures"),
            f"> Generated on {timestamp}" + (" (dry run, nothing written)" if self.dry_run else ""),
            md.heading("Created", 2),
            md.table(["Measure", "Table", "Expression", "Display Folder", "Format", "Description"], rows)
            if rows else "_No measures created._",
        ]
        if self.result.skipped:
            parts.append(md.heading("Skipped (already exist)", 2))
            parts.append("\n".join(f"- {name}" for name in self.result.skipped))

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n\n".join(parts) + "\n", encoding="utf-8")
        logger.info(f"Wrote report {path}")
        return path
