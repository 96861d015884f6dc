"""Tests for creating derived measures."""

import pytest

from src.formatting.dax_formatter import LocalDaxFormatter
from src.generators.naming import PERCENT_FORMAT
from src.generators.synthesizer import (
    ASK_SUFFIX,
    EXCLUDE_FROM_NAME,
    MeasureSynthesizer,
    SuffixCache,
)
from src.models import Function, Measure
from src.prompts.prompter import ScriptedPrompter


def _measure(model, name):
    return next(m for m in model.all_measures if m.name == name)


def _functions(model, *names):
    return [model.get_function(n) for n in names]


class TestSingleParameter:
    def test_annotated_suffix_scenario(self, model, prompter, passthrough_formatter):
        synth = MeasureSynthesizer(model, prompter, passthrough_formatter)

        result = synth.synthesize_single([_measure(model, "Sales")], _functions(model, "Local_PY"))

        assert len(result.created) == 1
        created = result.created[0]
        assert created.name == "Sales PY"
        assert created.table == "Sales"
        assert created.expression == "\nLocal_PY([Sales])"
        assert created.format_string == "#,0"
        assert created.display_folder == "Base\\Sales - Previous Year"
        assert created.description == "Total sales, previous year"
        assert created in model.get_table("Sales").measures
        assert model.created_measures == [created]
        assert prompter.calls == []

    def test_percentage_function_gets_percent_format(self, model, prompter, passthrough_formatter):
        synth = MeasureSynthesizer(model, prompter, passthrough_formatter)

        result = synth.synthesize_single([_measure(model, "Sales")], _functions(model, "Local_PctOfTotal"))

        created = result.created[0]
        assert created.name == "Sales % of Total"
        assert created.format_string == PERCENT_FORMAT
        # Function has no description
        assert created.description == ""

    def test_format_string_expression_is_inherited(self, model, prompter, passthrough_formatter):
        synth = MeasureSynthesizer(model, prompter, passthrough_formatter)

        result = synth.synthesize_single([_measure(model, "Cost")], _functions(model, "Local_PY"))

        created = result.created[0]
        assert created.table == "Finance"
        assert created.format_string == ""
        assert created.format_string_expression == '"#,0"'

    def test_existing_expression_is_skipped_despite_whitespace(self, model, prompter, passthrough_formatter):
        synth = MeasureSynthesizer(model, prompter, passthrough_formatter)
        before = len(model.all_measures)

        result = synth.synthesize_single([_measure(model, "Sales")], _functions(model, "Local_LY"))

        assert result.created == []
        assert result.skipped == ["Sales LY (in Sales)"]
        assert len(model.all_measures) == before

    def test_duplicate_check_is_scoped_to_the_table(self, model, passthrough_formatter):
        model.get_table("Finance").measures.append(
            Measure(name="Elsewhere", expression="Local_YTD([Sales])", table="Finance")
        )
        prompter = ScriptedPrompter(texts={"Local_YTD": "YTD"})
        synth = MeasureSynthesizer(model, prompter, passthrough_formatter)

        result = synth.synthesize_single([_measure(model, "Sales")], _functions(model, "Local_YTD"))

        assert [m.name for m in result.created] == ["Sales YTD"]

    def test_suffix_is_asked_once_per_function(self, model, passthrough_formatter):
        prompter = ScriptedPrompter(texts={"Local_YTD": "YTD"})
        synth = MeasureSynthesizer(model, prompter, passthrough_formatter)

        result = synth.synthesize_single(
            [_measure(model, "Sales"), _measure(model, "Actual"), _measure(model, "Budget")],
            _functions(model, "Local_YTD", "Local_PY"),
        )

        assert [m.name for m in result.created] == [
            "Sales YTD", "Sales PY", "Actual YTD", "Actual PY", "Budget YTD", "Budget PY",
        ]
        assert prompter.calls == [("text", "Local_YTD")]

    def test_default_suffix_is_function_name(self, model, prompter, passthrough_formatter):
        synth = MeasureSynthesizer(model, prompter, passthrough_formatter)

        result = synth.synthesize_single([_measure(model, "Sales")], _functions(model, "Local_YTD"))

        assert result.created[0].name == "Sales Local_YTD"

    def test_cancelled_suffix_reuses_base_name_uniquely(self, model, passthrough_formatter):
        prompter = ScriptedPrompter(cancel_texts=True)
        synth = MeasureSynthesizer(model, prompter, passthrough_formatter)

        result = synth.synthesize_single([_measure(model, "Sales")], _functions(model, "Local_YTD"))

        assert result.created[0].name == "Sales 1"

    def test_exclude_from_name_mode(self, model, passthrough_formatter):
        prompter = ScriptedPrompter(texts={"Local": "Local_"})
        synth = MeasureSynthesizer(model, prompter, passthrough_formatter)

        result = synth.synthesize_single(
            [_measure(model, "Sales")], _functions(model, "Local_YTD"),
            naming_mode=EXCLUDE_FROM_NAME, exclude_default="Local",
        )

        assert result.created[0].name == "Sales YTD"

    def test_exclude_from_name_cancelled_reuses_base_name(self, model, passthrough_formatter):
        prompter = ScriptedPrompter(cancel_texts=True)
        synth = MeasureSynthesizer(model, prompter, passthrough_formatter)

        result = synth.synthesize_single(
            [_measure(model, "Sales")], _functions(model, "Local_YTD"),
            naming_mode=EXCLUDE_FROM_NAME, exclude_default="Local",
        )

        assert result.created[0].name == "Sales 1"
        assert prompter.calls == [("text", "Local")]

    def test_formatted_expression_has_leading_newline(self, model, prompter):
        synth = MeasureSynthesizer(model, prompter, LocalDaxFormatter())

        result = synth.synthesize_single([_measure(model, "Sales")], _functions(model, "Local_PY"))

        assert result.created[0].expression == "\nLocal_PY ( [Sales] )"

    def test_second_run_skips_everything(self, model, prompter):
        synth = MeasureSynthesizer(model, prompter, LocalDaxFormatter())
        measures = [_measure(model, "Sales")]
        functions = _functions(model, "Local_PY")

        synth.synthesize_single(measures, functions)
        second = synth.synthesize_single(measures, functions)

        assert second.created == []
        assert second.skipped == ["Sales PY (in Sales)"]


class TestSuffixCache:
    def test_unknown_mode(self, prompter):
        with pytest.raises(ValueError):
            SuffixCache(prompter, mode="guess")

    def test_answers_are_cached(self):
        prompter = ScriptedPrompter(texts={"Local_YTD": " YTD "})
        cache = SuffixCache(prompter, ASK_SUFFIX)
        function = Function(name="Local_YTD", expression="(m: anyref) => m")

        assert cache.suffix_for(function) == "YTD"
        assert cache.suffix_for(function) == "YTD"
        assert len(prompter.calls) == 1

    def test_exclude_mode_asks_every_function_with_the_same_default(self):
        prompter = ScriptedPrompter(texts={"Local": "Local_"})
        cache = SuffixCache(prompter, EXCLUDE_FROM_NAME, exclude_default="Local")
        ytd = Function(name="Local_YTD", expression="(m: anyref) => m")
        mtd = Function(name="Local_MTD", expression="(m: anyref) => m")

        assert cache.suffix_for(ytd) == "YTD"
        assert cache.suffix_for(mtd) == "MTD"
        assert prompter.calls == [("text", "Local"), ("text", "Local")]


class TestComparison:
    def test_deviation_scenario(self, model, prompter, passthrough_formatter):
        synth = MeasureSynthesizer(model, prompter, passthrough_formatter)

        result = synth.synthesize_comparison(
            _measure(model, "Actual"), _measure(model, "Budget"), _functions(model, "ComparisonDeviation"),
        )

        created = result.created[0]
        assert created.name == "Actual Dev"
        assert created.expression == "ComparisonDeviation([Actual],[Budget])"
        assert created.table == "Sales"
        assert created.display_folder == "Base"
        assert created.format_string == "#,0.00"
        assert created.description == "Difference between 'Sales'[Actual] and 'Sales'[Budget]"

    def test_pct_change_scenario(self, model, prompter, passthrough_formatter):
        synth = MeasureSynthesizer(model, prompter, passthrough_formatter)

        result = synth.synthesize_comparison(
            _measure(model, "Actual"), _measure(model, "Budget"), _functions(model, "ComparisonPctChange"),
        )

        created = result.created[0]
        assert created.name == "Actual % change"
        assert created.expression == "ComparisonPctChange([Actual],[Budget])"
        assert created.format_string == PERCENT_FORMAT

    def test_new_measures_go_to_first_measure_table(self, model, prompter, passthrough_formatter):
        synth = MeasureSynthesizer(model, prompter, passthrough_formatter)

        result = synth.synthesize_comparison(
            _measure(model, "Cost"), _measure(model, "Sales"), _functions(model, "ComparisonVariance"),
        )

        created = result.created[0]
        assert created.name == "Variance"
        assert created.table == "Finance"
        assert created.description == "Comparison function ComparisonVariance"

    def test_existing_name_in_target_table_is_skipped(self, model, prompter, passthrough_formatter):
        model.get_table("Sales").measures.append(Measure(name="Variance", expression="1", table="Sales"))
        synth = MeasureSynthesizer(model, prompter, passthrough_formatter)

        result = synth.synthesize_comparison(
            _measure(model, "Actual"), _measure(model, "Budget"),
            _functions(model, "ComparisonVariance", "ComparisonDeviation"),
        )

        assert result.skipped == ["Variance"]
        assert [m.name for m in result.created] == ["Actual Dev"]

    def test_existing_expression_anywhere_in_model_is_skipped(self, model, prompter, passthrough_formatter):
        model.get_table("Finance").measures.append(
            Measure(name="Old Dev", expression="ComparisonDeviation (\n\t[Actual], [Budget]\n)", table="Finance")
        )
        synth = MeasureSynthesizer(model, prompter, passthrough_formatter)

        result = synth.synthesize_comparison(
            _measure(model, "Actual"), _measure(model, "Budget"), _functions(model, "ComparisonDeviation"),
        )

        assert result.created == []
        assert result.skipped == ["Actual Dev"]

    def test_formatted_without_leading_newline(self, model, prompter):
        synth = MeasureSynthesizer(model, prompter, LocalDaxFormatter())

        result = synth.synthesize_comparison(
            _measure(model, "Actual"), _measure(model, "Budget"), _functions(model, "ComparisonDeviation"),
        )

        assert result.created[0].expression == "ComparisonDeviation ( [Actual], [Budget] )"

    def test_base_format_expression_is_not_inherited(self, model, prompter, passthrough_formatter):
        actual = _measure(model, "Actual")
        actual.format_string_expression = 'SELECTEDVALUE(Fmt[Code], "#,0")'
        synth = MeasureSynthesizer(model, prompter, passthrough_formatter)

        result = synth.synthesize_comparison(
            actual, _measure(model, "Budget"), _functions(model, "ComparisonPctChange"),
        )

        created = result.created[0]
        assert created.format_string == PERCENT_FORMAT
        assert created.format_string_expression == ""

    def test_format_expression_from_annotation(self, model, prompter, passthrough_formatter):
        deviation = model.get_function("ComparisonDeviation")
        deviation.annotations["FormatStringExpression"] = "SELECTEDMEASUREFORMATSTRING()"
        synth = MeasureSynthesizer(model, prompter, passthrough_formatter)

        result = synth.synthesize_comparison(_measure(model, "Cost"), _measure(model, "Sales"), [deviation])

        assert result.created[0].format_string_expression == "SELECTEDMEASUREFORMATSTRING()"
