"""Create derived measures by applying DAX functions to base measures."""

import logging
from dataclasses import dataclass, field

from ..formatting.dax_formatter import canonical_expression
from ..models import AnnotationKey, Function, Measure, SemanticModel
from .naming import (
    annotated_measure_name,
    build_expression,
    comparison_measure_name,
    derive_comparison_description,
    derive_display_folder,
    derive_format_string,
    derive_format_string_expression,
    derive_single_description,
    suffix_from_function_name,
    suffixed_measure_name,
)

logger = logging.getLogger(__name__)

ASK_SUFFIX = "ask_suffix"
EXCLUDE_FROM_NAME = "exclude_from_name"
NAMING_MODES = (ASK_SUFFIX, EXCLUDE_FROM_NAME)


@dataclass
class SynthesisResult:
    created: list[Measure] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


class SuffixCache:
    """Suffix answers for one run, asked at most once per function."""

    def __init__(self, prompter, mode: str = ASK_SUFFIX, exclude_default: str = ""):
        if mode not in NAMING_MODES:
            raise ValueError(f"Unknown naming mode: {mode!r}. Expected one of {NAMING_MODES}.")
        self.prompter = prompter
        self.mode = mode
        self.exclude_default = exclude_default
        self._answers: dict[str, str] = {}

    def suffix_for(self, function: Function) -> str:
        if function.name not in self._answers:
            self._answers[function.name] = self._ask(function)
        return self._answers[function.name]

    def _ask(self, function: Function) -> str:
        if self.mode == ASK_SUFFIX:
            answer = self.prompter.request_text(
                "Define Measure Suffix",
                f"Enter suffix for the measure name, from the selected function {function.name}:",
                function.name,
            )
            if answer is None:
                logger.info(f"No suffix given for {function.name}")
                return ""
            return answer.strip()

        answer = self.prompter.request_text(
            "Define Excluded Text",
            f"Enter the text to remove from {function.name} to form the measure suffix:",
            self.exclude_default,
        )
        if answer is None:
            logger.info(f"No excluded text given for {function.name}")
            return ""
        return suffix_from_function_name(function.name, answer)


class MeasureSynthesizer:
    """Adds derived measures to a SemanticModel.

    Args:
        model: Model receiving the new measures.
        prompter: Dialogs for suffix questions.
        formatter: Object with ``format(expression) -> str``.
    """

    def __init__(self, model: SemanticModel, prompter, formatter):
        self.model = model
        self.prompter = prompter
        self.formatter = formatter

    def _expression_exists(self, expression: str, table: str | None = None) -> bool:
        target = canonical_expression(expression)
        return any(
            canonical_expression(m.expression) == target
            for m in self.model.all_measures
            if table is None or m.table == table
        )

    # -----------------------------------------------------------------------
    # One base measure per function call
    # -----------------------------------------------------------------------

    def synthesize_single(
        self,
        measures: list[Measure],
        functions: list[Function],
        naming_mode: str = ASK_SUFFIX,
        exclude_default: str = "",
    ) -> SynthesisResult:
        """Create one measure per (measure, function) pair.

        Functions without MeasurePrefix/MeasureSuffix annotations get their
        suffix from a prompt, asked once per function for the whole run.
        """
        result = SynthesisResult()
        suffixes = SuffixCache(self.prompter, naming_mode, exclude_default)

        for m in measures:
            for f in functions:
                expression = build_expression(f.name, m)

                name = annotated_measure_name(f, m.name)
                if name is None:
                    name = suffixed_measure_name(m.name, suffixes.suffix_for(f))

                if self._expression_exists(expression, table=m.table):
                    logger.info(f"Skipping {name}: {expression} already exists in {m.table}")
                    result.skipped.append(f"{name} (in {m.table})")
                    continue

                new_measure = self.model.add_measure(
                    m.table, name, expression, derive_display_folder(f, m)
                )
                new_measure.format_string = derive_format_string(f, m)
                new_measure.format_string_expression = derive_format_string_expression(f, m)
                new_measure.description = derive_single_description(f, m)
                new_measure.expression = "\n" + self.formatter.format(new_measure.expression)

                logger.info(f"Created measure {new_measure.dax_object_full_name} = {expression}")
                result.created.append(new_measure)

        return result

    # -----------------------------------------------------------------------
    # Two base measures per function call
    # -----------------------------------------------------------------------

    def synthesize_comparison(
        self,
        measure1: Measure,
        measure2: Measure,
        functions: list[Function],
    ) -> SynthesisResult:
        """Create one measure per function comparing measure1 with measure2 in measure1's table.

        The format string follows measure1. A dynamic format string expression
        only comes from the function's FormatStringExpression annotation.
        """
        result = SynthesisResult()
        target_table = self.model.get_table(measure1.table)

        for f in functions:
            name = comparison_measure_name(f.name, measure1.name)
            expression = build_expression(f.name, measure1, measure2)

            if any(m.name == name for m in target_table.measures):
                logger.info(f"Skipping {name}: a measure with this name exists in {target_table.name}")
                result.skipped.append(name)
                continue
            if self._expression_exists(expression):
                logger.info(f"Skipping {name}: {expression} already exists in the model")
                result.skipped.append(name)
                continue

            new_measure = self.model.add_measure(
                target_table.name, name, expression, measure1.display_folder
            )
            new_measure.format_string = derive_format_string(f, measure1)
            new_measure.format_string_expression = f.get_annotation(AnnotationKey.FORMAT_STRING_EXPRESSION) or ""
            new_measure.description = derive_comparison_description(f, measure1, measure2)
            new_measure.expression = self.formatter.format(new_measure.expression)

            logger.info(f"Created measure {new_measure.dax_object_full_name} = {expression}")
            result.created.append(new_measure)

        return result
