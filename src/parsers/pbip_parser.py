"""Parser for Power BI Project (PBIP) files in both BIM (JSON) and TMDL formats."""

import json
import logging
import re
from pathlib import Path

from ..models import Function, Measure, SemanticModel, Table

logger = logging.getLogger(__name__)

# Child lines of a measure/function that are properties rather than DAX
_PROPERTY_RE = re.compile(
    r"^(annotation\s|extendedProperty\s|changedProperty\s|formatStringDefinition\b|isHidden$|\w+\s*:)"
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def detect_input_type(path: str | Path) -> str:
    """Detect the input type: 'pbip_bim', 'pbip_tmdl', or 'unknown'.

    Args:
        path: Path to a .pbip file, semantic model directory, model.bim or definition/ folder.

    Returns:
        One of: 'pbip_bim', 'pbip_tmdl', 'unknown'.
    """
    p = Path(path)

    if p.is_file() and p.name == "model.bim":
        return "pbip_bim"

    if p.suffix.lower() == ".pbip":
        # .pbip is a pointer file; find the semantic model folder next to it
        sm_dir = _find_semantic_model_dir(p.parent)
        if sm_dir:
            return _detect_format_in_dir(sm_dir)
        return "unknown"

    if p.is_dir():
        if p.name == "definition" and any(p.glob("*.tmdl")):
            return "pbip_tmdl"
        # Could be the semantic model dir itself, or a parent containing it
        fmt = _detect_format_in_dir(p)
        if fmt != "unknown":
            return fmt
        sm_dir = _find_semantic_model_dir(p)
        if sm_dir:
            return _detect_format_in_dir(sm_dir)

    return "unknown"


def load_model(path: str | Path) -> SemanticModel:
    """Load a SemanticModel from a PBIP project (BIM or TMDL)."""
    parser = PBIPParser()
    return parser.parse(path)


# ---------------------------------------------------------------------------
# Parser class
# ---------------------------------------------------------------------------

class PBIPParser:
    """Parses PBIP projects in both BIM (JSON) and TMDL folder formats."""

    def parse(self, path: str | Path) -> SemanticModel:
        """Parse a PBIP project and return a SemanticModel.

        Args:
            path: Path to .pbip file, .SemanticModel directory, model.bim, or definition/ folder.
        """
        p = Path(path)
        input_type = detect_input_type(p)

        if input_type == "pbip_bim":
            bim_path = self._find_bim_file(p)
            logger.info(f"Parsing BIM (JSON) file: {bim_path}")
            return self._parse_bim(bim_path)

        elif input_type == "pbip_tmdl":
            tmdl_dir = self._find_tmdl_dir(p)
            logger.info(f"Parsing TMDL folder: {tmdl_dir}")
            return self._parse_tmdl(tmdl_dir)

        else:
            raise ValueError(
                f"Cannot detect PBIP format at: {p}. "
                f"Expected a .pbip file, a directory with model.bim, or a definition/ folder with .tmdl files."
            )

    # -----------------------------------------------------------------------
    # BIM (JSON / TMSL) parsing
    # -----------------------------------------------------------------------

    def _parse_bim(self, bim_path: Path) -> SemanticModel:
        """Parse a model.bim JSON file."""
        data = json.loads(bim_path.read_text(encoding="utf-8-sig"))
        model = data.get("model", data)  # Some BIM files wrap in {"model": ...}
        model_name = data.get("name", bim_path.parent.name)

        tables = []
        for t in model.get("tables", []):
            table_name = t.get("name", "")
            measures = []
            for m in t.get("measures", []):
                fs_definition = m.get("formatStringDefinition") or {}
                measures.append(Measure(
                    name=m.get("name", ""),
                    expression=_join_lines(m.get("expression", "")),
                    table=table_name,
                    description=_join_lines(m.get("description", "")),
                    format_string=m.get("formatString", ""),
                    format_string_expression=_join_lines(fs_definition.get("expression", "")),
                    is_hidden=m.get("isHidden", False),
                    display_folder=m.get("displayFolder", ""),
                    annotations=_bim_annotations(m),
                ))

            tables.append(Table(
                name=table_name,
                measures=measures,
                is_hidden=t.get("isHidden", False),
                description=_join_lines(t.get("description", "")),
            ))

        functions = []
        for f in model.get("functions", []):
            functions.append(Function(
                name=f.get("name", ""),
                expression=_join_lines(f.get("expression", "")),
                description=_join_lines(f.get("description", "")),
                annotations=_bim_annotations(f),
            ))

        measure_count = sum(len(t.measures) for t in tables)
        logger.info(f"BIM parsed: {len(tables)} tables, {measure_count} measures, {len(functions)} functions")

        return SemanticModel(
            name=model_name,
            file_path=str(bim_path),
            format="pbip_bim",
            tables=tables,
            functions=functions,
        )

    # -----------------------------------------------------------------------
    # TMDL parsing
    # -----------------------------------------------------------------------

    def _parse_tmdl(self, definition_dir: Path) -> SemanticModel:
        """Parse a TMDL definition folder."""
        model_name = definition_dir.parent.name

        tables: list[Table] = []
        tables_dir = definition_dir / "tables"
        if tables_dir.is_dir():
            for tmdl_file in sorted(tables_dir.glob("*.tmdl")):
                tables.append(self._parse_tmdl_table(tmdl_file))

        functions: list[Function] = []
        function_files = [definition_dir / "functions.tmdl"]
        functions_dir = definition_dir / "functions"
        if functions_dir.is_dir():
            function_files.extend(sorted(functions_dir.glob("*.tmdl")))
        for tmdl_file in function_files:
            functions.extend(self._parse_tmdl_functions(tmdl_file))

        measure_count = sum(len(t.measures) for t in tables)
        logger.info(f"TMDL parsed: {len(tables)} tables, {measure_count} measures, {len(functions)} functions")

        return SemanticModel(
            name=model_name,
            file_path=str(definition_dir),
            format="pbip_tmdl",
            tables=tables,
            functions=functions,
        )

    def _parse_tmdl_table(self, tmdl_path: Path) -> Table:
        """Parse a single table .tmdl file."""
        text = tmdl_path.read_text(encoding="utf-8-sig")
        lines = text.splitlines()

        table_name = ""
        table_hidden = False
        table_desc = ""
        measures: list[Measure] = []

        i = 0
        while i < len(lines):
            stripped = lines[i].strip()

            # Table declaration
            if stripped.startswith("table "):
                table_name = self._unquote(stripped[6:].strip())

            # Table-level properties
            elif stripped == "isHidden" and self._indent_level(lines[i]) == 1 and not measures:
                table_hidden = True

            # Description (/// comments before an object)
            elif stripped.startswith("///"):
                desc_text, i = self._read_description(lines, i)
                next_stripped = lines[i].strip() if i < len(lines) else ""
                if next_stripped.startswith("table "):
                    table_desc = desc_text
                elif next_stripped.startswith("measure "):
                    meas, i = self._parse_tmdl_measure(lines, i, table_name, desc_text)
                    measures.append(meas)
                continue  # already advanced i

            # Measure
            elif stripped.startswith("measure "):
                meas, i = self._parse_tmdl_measure(lines, i, table_name)
                measures.append(meas)
                continue

            i += 1

        return Table(
            name=table_name,
            measures=measures,
            is_hidden=table_hidden,
            description=table_desc,
            source_path=str(tmdl_path),
        )

    def _parse_tmdl_measure(
        self, lines: list[str], start: int, table_name: str, description: str = ""
    ) -> tuple[Measure, int]:
        """Parse a measure declaration and its properties. Returns (Measure, next line index)."""
        name, expression, props, annotations, i = self._parse_tmdl_object(lines, start, "measure")

        return Measure(
            name=name,
            expression=expression,
            table=table_name,
            description=description,
            format_string=props.get("formatString", ""),
            format_string_expression=props.get("formatStringDefinition", ""),
            is_hidden="isHidden" in props,
            display_folder=self._unquote(props.get("displayFolder", "")),
            annotations=annotations,
        ), i

    def _parse_tmdl_functions(self, tmdl_path: Path) -> list[Function]:
        """Parse the function declarations of a functions .tmdl file."""
        if not tmdl_path.exists():
            return []

        lines = tmdl_path.read_text(encoding="utf-8-sig").splitlines()
        functions: list[Function] = []
        pending_description = ""

        i = 0
        while i < len(lines):
            stripped = lines[i].strip()
            if stripped.startswith("///"):
                pending_description, i = self._read_description(lines, i)
                continue
            if stripped.startswith("function "):
                name, expression, _props, annotations, i = self._parse_tmdl_object(lines, i, "function")
                functions.append(Function(
                    name=name,
                    expression=expression,
                    description=pending_description,
                    annotations=annotations,
                ))
                pending_description = ""
                continue
            if stripped:
                pending_description = ""
            i += 1

        return functions

    def _parse_tmdl_object(
        self, lines: list[str], start: int, keyword: str
    ) -> tuple[str, str, dict[str, str], dict[str, str], int]:
        """Parse a `<keyword> Name = expression` block with its child properties.

        Returns (name, expression, properties, annotations, next line index).
        """
        line = lines[start].strip()
        match = re.match(rf"{keyword}\s+(.+?)\s*=\s*(.*)", line)
        if not match:
            name = self._unquote(line[len(keyword):].strip())
            expression = ""
        else:
            name = self._unquote(match.group(1).strip())
            expression = match.group(2).strip()

        indent = self._indent_level(lines[start])
        i = start + 1

        # If expression is empty, collect multi-line expression
        if not expression:
            expression, i = self._read_expression(lines, i, indent)

        props: dict[str, str] = {}
        annotations: dict[str, str] = {}
        while i < len(lines):
            l = lines[i]
            if not l.strip():
                i += 1
                continue
            if self._indent_level(l) <= indent:
                break
            prop = l.strip()
            i += 1
            if prop.startswith("annotation "):
                ann = re.match(r"annotation\s+(.+?)\s*=\s*(.*)", prop)
                if ann:
                    annotations[self._unquote(ann.group(1))] = self._unquote(ann.group(2).strip())
            elif prop.startswith("formatStringDefinition"):
                first = prop.split("=", 1)[1].strip() if "=" in prop else ""
                if first:
                    props["formatStringDefinition"] = first
                else:
                    props["formatStringDefinition"], i = self._read_expression(
                        lines, i, self._indent_level(l)
                    )
            elif ":" in prop:
                key, value = prop.split(":", 1)
                props[key.strip()] = value.strip()
            else:
                props[prop] = ""

        return name, expression, props, annotations, i

    def _read_expression(self, lines: list[str], start: int, indent: int) -> tuple[str, int]:
        """Collect an indented multi-line expression. Returns (expression, next line index)."""
        expr_lines = []
        i = start
        while i < len(lines):
            l = lines[i]
            if not l.strip():
                expr_lines.append("")
                i += 1
                continue
            level = self._indent_level(l)
            if level <= indent:
                break
            if level == indent + 1 and _PROPERTY_RE.match(l.strip()):
                break
            expr_lines.append(l.strip())
            i += 1
        return "\n".join(expr_lines).strip(), i

    @staticmethod
    def _read_description(lines: list[str], start: int) -> tuple[str, int]:
        """Collect consecutive /// lines. Returns (description, next line index)."""
        desc_lines = []
        i = start
        while i < len(lines) and lines[i].strip().startswith("///"):
            desc_lines.append(lines[i].strip()[3:].strip())
            i += 1
        return " ".join(desc_lines), i

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    @staticmethod
    def _unquote(name: str) -> str:
        """Remove surrounding single quotes from a TMDL name."""
        if len(name) >= 2 and name.startswith("'") and name.endswith("'"):
            return name[1:-1].replace("''", "'")
        # Also strip double quotes
        if len(name) >= 2 and name.startswith('"') and name.endswith('"'):
            return name[1:-1]
        return name

    @staticmethod
    def _indent_level(line: str) -> int:
        """Count the indentation level (tabs or groups of 4 spaces)."""
        spaces = len(line) - len(line.lstrip())
        tabs = line.count("\t", 0, spaces)
        if tabs > 0:
            return tabs
        return spaces // 4

    def _find_bim_file(self, path: Path) -> Path:
        """Locate the model.bim file from various input paths."""
        if path.is_file() and path.name == "model.bim":
            return path
        if path.suffix.lower() == ".pbip":
            sm_dir = _find_semantic_model_dir(path.parent)
            if sm_dir:
                bim = sm_dir / "model.bim"
                if bim.exists():
                    return bim
        if path.is_dir():
            bim = path / "model.bim"
            if bim.exists():
                return bim
            sm_dir = _find_semantic_model_dir(path)
            if sm_dir:
                bim = sm_dir / "model.bim"
                if bim.exists():
                    return bim
        raise FileNotFoundError(f"model.bim not found at: {path}")

    def _find_tmdl_dir(self, path: Path) -> Path:
        """Locate the TMDL definition folder from various input paths."""
        if path.is_dir() and path.name == "definition":
            return path
        if path.is_dir() and (path / "tables").is_dir():
            return path
        defn = path / "definition"
        if defn.is_dir():
            return defn
        if path.suffix.lower() == ".pbip":
            sm_dir = _find_semantic_model_dir(path.parent)
            if sm_dir:
                defn = sm_dir / "definition"
                if defn.is_dir():
                    return defn
        if path.is_dir():
            sm_dir = _find_semantic_model_dir(path)
            if sm_dir:
                defn = sm_dir / "definition"
                if defn.is_dir():
                    return defn
        raise FileNotFoundError(f"TMDL definition folder not found at: {path}")


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------

def _join_lines(value) -> str:
    """BIM stores multi-line text either as a string or as a list of lines."""
    if isinstance(value, list):
        return "\n".join(value)
    return value or ""


def _bim_annotations(obj: dict) -> dict[str, str]:
    return {
        a.get("name", ""): _join_lines(a.get("value", ""))
        for a in obj.get("annotations", [])
        if a.get("name")
    }


def _find_semantic_model_dir(parent: Path) -> Path | None:
    """Find a *.SemanticModel or *.Dataset directory inside parent."""
    for d in parent.iterdir():
        if d.is_dir() and (
            d.name.endswith(".SemanticModel")
            or d.name.endswith(".Dataset")
        ):
            return d
    # Also check if parent itself is the semantic model dir
    if (parent / "model.bim").exists() or (parent / "definition").is_dir():
        return parent
    return None


def _detect_format_in_dir(sm_dir: Path) -> str:
    """Detect whether a semantic model directory uses BIM or TMDL format."""
    if (sm_dir / "definition" / "tables").is_dir():
        return "pbip_tmdl"
    if (sm_dir / "definition").is_dir():
        # definition exists but no tables subfolder, could still be TMDL with model.tmdl
        if any((sm_dir / "definition").glob("*.tmdl")):
            return "pbip_tmdl"
    if (sm_dir / "model.bim").exists():
        return "pbip_bim"
    return "unknown"
