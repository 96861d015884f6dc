"""Data models for a Power BI semantic model: tables, measures and DAX functions."""

from dataclasses import dataclass, field


class AnnotationKey:
    """Function annotations recognised when generating measures."""

    MEASURE_PREFIX = "MeasurePrefix"
    MEASURE_SUFFIX = "MeasureSuffix"
    FOLDER_PREFIX = "FolderPrefix"
    FOLDER_SUFFIX = "FolderSuffix"
    FORMAT_STRING = "FormatString"
    FORMAT_STRING_EXPRESSION = "FormatStringExpression"
    DESCRIPTION = "Description"


def dax_object_name(name: str) -> str:
    """Bracketed DAX reference for a measure or column name: [Name]."""
    return f"[{name.replace(']', ']]')}]"


def dax_table_name(name: str) -> str:
    """Quoted DAX reference for a table name: 'Table'."""
    return "'" + name.replace("'", "''") + "'"


@dataclass
class Function:
    """A DAX user-defined function in the semantic model."""
    name: str
    expression: str
    description: str = ""
    annotations: dict[str, str] = field(default_factory=dict)

    def get_annotation(self, key: str) -> str | None:
        """Return the annotation value, or None when missing or blank."""
        value = self.annotations.get(key)
        if value is None or not value.strip():
            return None
        return value


@dataclass
class Measure:
    """A DAX measure in the Power BI model."""
    name: str
    expression: str
    table: str
    description: str = ""
    format_string: str = ""
    format_string_expression: str = ""
    is_hidden: bool = False
    display_folder: str = ""
    annotations: dict[str, str] = field(default_factory=dict)

    @property
    def dax_object_name(self) -> str:
        return dax_object_name(self.name)

    @property
    def dax_object_full_name(self) -> str:
        return dax_table_name(self.table) + dax_object_name(self.name)


@dataclass
class Table:
    """A table in the Power BI model."""
    name: str
    measures: list[Measure] = field(default_factory=list)
    is_hidden: bool = False
    description: str = ""
    source_path: str = ""


@dataclass
class SemanticModel:
    """A semantic model loaded from a PBIP project."""
    name: str
    file_path: str
    format: str = "pbip_bim"
    tables: list[Table] = field(default_factory=list)
    functions: list[Function] = field(default_factory=list)
    created_measures: list[Measure] = field(default_factory=list)

    @property
    def all_measures(self) -> list[Measure]:
        return [m for t in self.tables for m in t.measures]

    def get_table(self, name: str) -> Table:
        for table in self.tables:
            if table.name == name:
                return table
        raise KeyError(f"Table not found: {name}")

    def get_function(self, name: str) -> Function | None:
        for function in self.functions:
            if function.name == name:
                return function
        return None

    def find_measures(self, name: str, table: str | None = None) -> list[Measure]:
        return [
            m for m in self.all_measures
            if m.name == name and (table is None or m.table == table)
        ]

    def unique_measure_name(self, name: str) -> str:
        """Measure names are unique across the model; append a counter on clashes."""
        taken = {m.name.lower() for m in self.all_measures}
        if name.lower() not in taken:
            return name
        counter = 1
        while f"{name} {counter}".lower() in taken:
            counter += 1
        return f"{name} {counter}"

    def add_measure(
        self,
        table_name: str,
        name: str,
        expression: str,
        display_folder: str = "",
    ) -> Measure:
        """Create a new measure in the given table and track it for writing."""
        table = self.get_table(table_name)
        measure = Measure(
            name=self.unique_measure_name(name),
            expression=expression,
            table=table.name,
            display_folder=display_folder,
        )
        table.measures.append(measure)
        self.created_measures.append(measure)
        return measure
