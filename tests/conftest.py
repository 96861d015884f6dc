"""Pytest configuration and fixtures for measure generator tests."""

import json
from pathlib import Path

import pytest

from src.models import Function, Measure, SemanticModel, Table
from src.prompts.prompter import ScriptedPrompter


# =============================================================================
# IN-MEMORY MODEL FIXTURES
# =============================================================================

def make_functions() -> list[Function]:
    return [
        Function(
            name="Local_PY",
            expression="(baseMeasure: anyref) => CALCULATE(baseMeasure, SAMEPERIODLASTYEAR('Date'[Date]))",
            description="previous year",
            annotations={"MeasureSuffix": "PY", "FolderSuffix": "Previous Year"},
        ),
        Function(
            name="Local_LY",
            expression="(m: anyref) => CALCULATE(m, DATEADD('Date'[Date], -1, YEAR))",
            description="last year",
            annotations={"MeasureSuffix": "LY"},
        ),
        Function(
            name="Local_YTD",
            expression="(m: anyref) => TOTALYTD(m, 'Date'[Date])",
            description="year to date",
        ),
        Function(
            name="Local_PctOfTotal",
            expression="(m: anyref) => DIVIDE(m, CALCULATE(m, ALL('Sales')))",
            annotations={"MeasureSuffix": "% of Total"},
        ),
        Function(
            name="Local_Shift",
            expression="(m: anyref, periods: int64) => CALCULATE(m, DATEADD('Date'[Date], periods, MONTH))",
            description="shifted",
        ),
        Function(
            name="ComparisonDeviation",
            expression="(measure1: anyref, measure2: anyref) => measure1 - measure2",
            description="Difference between measure1 and measure2",
        ),
        Function(
            name="ComparisonPctChange",
            expression="(a: anyref, b: anyref) => DIVIDE(a - b, b)",
            description="Change of measure1 compared to measure2",
        ),
        Function(
            name="ComparisonVariance",
            expression="(a: anyref, b: anyref) => a - b",
        ),
        Function(
            name="Helper",
            expression="(x) => x * 2",
            description="not a generator function",
        ),
    ]


def make_model() -> SemanticModel:
    sales = Table(name="Sales", measures=[
        Measure(name="Sales", expression="SUM(Sales[Amount])", table="Sales",
                description="Total sales", format_string="#,0", display_folder="Base"),
        Measure(name="Actual", expression="SUM(Sales[Actual])", table="Sales",
                description="Actual amount", format_string="#,0.00", display_folder="Base"),
        Measure(name="Budget", expression="SUM(Sales[Budget])", table="Sales",
                description="Budget amount", format_string="#,0", display_folder="Base"),
        Measure(name="Margin", expression="[Sales] - [Cost]", table="Sales"),
        Measure(name="Sales LY", expression="\nLocal_LY (\n    [Sales]\n)", table="Sales",
                format_string="#,0"),
    ])
    finance = Table(name="Finance", measures=[
        Measure(name="Cost", expression="SUM(Finance[Cost])", table="Finance",
                description="Total cost", format_string_expression='"#,0"'),
    ])
    return SemanticModel(
        name="Demo",
        file_path="",
        tables=[sales, finance],
        functions=make_functions(),
    )


@pytest.fixture
def model() -> SemanticModel:
    return make_model()


@pytest.fixture
def prompter() -> ScriptedPrompter:
    return ScriptedPrompter()


class PassthroughFormatter:
    def format(self, expression: str) -> str:
        return expression


@pytest.fixture
def passthrough_formatter() -> PassthroughFormatter:
    return PassthroughFormatter()


# =============================================================================
# PBIP PROJECT FIXTURES
# =============================================================================

def _bim_function(f: Function) -> dict:
    obj = {"name": f.name, "expression": f.expression}
    if f.description:
        obj["description"] = f.description
    if f.annotations:
        obj["annotations"] = [{"name": k, "value": v} for k, v in f.annotations.items()]
    return obj


def _bim_measure(m: Measure) -> dict:
    obj = {"name": m.name, "expression": m.expression}
    if m.format_string:
        obj["formatString"] = m.format_string
    if m.format_string_expression:
        obj["formatStringDefinition"] = {"expression": m.format_string_expression}
    if m.description:
        obj["description"] = m.description
    if m.display_folder:
        obj["displayFolder"] = m.display_folder
    return obj


@pytest.fixture
def bim_project(tmp_path) -> Path:
    """A PBIP project with a model.bim semantic model. Returns the .pbip path."""
    model = make_model()
    sm_dir = tmp_path / "Demo.SemanticModel"
    sm_dir.mkdir()
    bim = {
        "name": "Demo",
        "compatibilityLevel": 1702,
        "model": {
            "culture": "en-US",
            "tables": [
                {
                    "name": t.name,
                    "columns": [{"name": "Amount", "dataType": "decimal"}],
                    "measures": [_bim_measure(m) for m in t.measures],
                }
                for t in model.tables
            ],
            "functions": [_bim_function(f) for f in model.functions],
        },
    }
    (sm_dir / "model.bim").write_text(json.dumps(bim, indent=2), encoding="utf-8")
    pbip = tmp_path / "Demo.pbip"
    pbip.write_text('{"version": "1.0", "artifacts": []}', encoding="utf-8")
    return pbip


SALES_TMDL = """\
table Sales
\tlineageTag: 1f1e-sales

\t/// Total sales
\tmeasure Sales = SUM(Sales[Amount])
\t\tformatString: #,0
\t\tdisplayFolder: Base
\t\tlineageTag: 1f1e-m1

\t/// Budget amount
\tmeasure Budget =
\t\t\tSUMX(
\t\t\t\tSales,
\t\t\t\tSales[Budget]
\t\t\t)
\t\tformatString: #,0
\t\tdisplayFolder: Base

\tmeasure 'Sales LY' =
\t\t\tLocal_LY ( [Sales] )
\t\tformatString: #,0

\tmeasure Ratio = DIVIDE([Sales], [Budget])
\t\tformatStringDefinition = IF([Sales] > 1, "0.0", "0.00")
\t\tannotation Owner = Finance

\tcolumn Amount
\t\tdataType: decimal
\t\tsummarizeBy: sum
\t\tsourceColumn: Amount

\tpartition Sales = m
\t\tmode: import
\t\tsource =
\t\t\t\tlet
\t\t\t\t    Source = #table({"Amount"}, {{1}})
\t\t\t\tin
\t\t\t\t    Source
"""

FUNCTIONS_TMDL = """\
/// Previous year
function Local_PY = (baseMeasure: anyref) => CALCULATE(baseMeasure, SAMEPERIODLASTYEAR('Date'[Date]))
\tannotation MeasureSuffix = PY
\tannotation FolderSuffix = Previous Year

/// Last year
function Local_LY = (m: anyref) => CALCULATE(m, DATEADD('Date'[Date], -1, YEAR))
\tannotation MeasureSuffix = LY

/// Year to date
function Local_YTD =
\t\t(
\t\t\tm: anyref
\t\t) =>
\t\tTOTALYTD(m, 'Date'[Date])

/// Difference between measure1 and measure2
function ComparisonDeviation =
\t\t(measure1: anyref, measure2: anyref) =>
\t\tmeasure1 - measure2
\tannotation FormatString = "#,0.00"
"""


@pytest.fixture
def tmdl_project(tmp_path) -> Path:
    """A PBIP project with a TMDL semantic model. Returns the .SemanticModel directory."""
    sm_dir = tmp_path / "Demo.SemanticModel"
    tables_dir = sm_dir / "definition" / "tables"
    tables_dir.mkdir(parents=True)
    (sm_dir / "definition" / "model.tmdl").write_text("model Model\n\tculture: en-US\n", encoding="utf-8")
    (tables_dir / "Sales.tmdl").write_text(SALES_TMDL, encoding="utf-8")
    (sm_dir / "definition" / "functions.tmdl").write_text(FUNCTIONS_TMDL, encoding="utf-8")
    return sm_dir
