"""Write newly created measures back into a PBIP project (BIM or TMDL)."""

import json
import logging
import re
from pathlib import Path

from ..models import Measure, SemanticModel

logger = logging.getLogger(__name__)

_PLAIN_TMDL_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class PBIPWriter:
    """Persists the measures created in a SemanticModel to its source files."""

    def save(self, model: SemanticModel) -> int:
        """Write model.created_measures to disk. Returns the number of measures written."""
        if not model.created_measures:
            logger.info("No new measures to write")
            return 0

        if model.format == "pbip_bim":
            self._save_bim(model)
        elif model.format == "pbip_tmdl":
            self._save_tmdl(model)
        else:
            raise ValueError(f"Unsupported model format: {model.format}")

        logger.info(f"Wrote {len(model.created_measures)} measures to {model.file_path}")
        return len(model.created_measures)

    # -----------------------------------------------------------------------
    # BIM
    # -----------------------------------------------------------------------

    def _save_bim(self, model: SemanticModel) -> None:
        bim_path = Path(model.file_path)
        data = json.loads(bim_path.read_text(encoding="utf-8-sig"))
        bim_model = data.get("model", data)
        tables = {t.get("name", ""): t for t in bim_model.get("tables", [])}

        for measure in model.created_measures:
            table = tables.get(measure.table)
            if table is None:
                raise KeyError(f"Table not found in {bim_path.name}: {measure.table}")
            table.setdefault("measures", []).append(self._bim_measure(measure))

        bim_path.write_text(
            json.dumps(data, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )

    @staticmethod
    def _bim_measure(measure: Measure) -> dict:
        """Serialize a measure as a TMSL object. Multi-line text is stored as a list of lines."""
        obj: dict = {
            "name": measure.name,
            "expression": _split_lines(measure.expression),
        }
        if measure.format_string:
            obj["formatString"] = measure.format_string
        if measure.format_string_expression:
            obj["formatStringDefinition"] = {
                "expression": _split_lines(measure.format_string_expression),
            }
        if measure.description:
            obj["description"] = _split_lines(measure.description)
        if measure.display_folder:
            obj["displayFolder"] = measure.display_folder
        return obj

    # -----------------------------------------------------------------------
    # TMDL
    # -----------------------------------------------------------------------

    def _save_tmdl(self, model: SemanticModel) -> None:
        by_table: dict[str, list[Measure]] = {}
        for measure in model.created_measures:
            by_table.setdefault(measure.table, []).append(measure)

        for table_name, measures in by_table.items():
            table = model.get_table(table_name)
            if not table.source_path:
                raise FileNotFoundError(f"No TMDL file known for table: {table_name}")
            path = Path(table.source_path)
            text = path.read_text(encoding="utf-8-sig")
            blocks = "\n".join(self._tmdl_measure(m) for m in measures)
            path.write_text(text.rstrip("\n") + "\n\n" + blocks, encoding="utf-8")
            logger.debug(f"Appended {len(measures)} measures to {path}")

    @staticmethod
    def _tmdl_measure(measure: Measure) -> str:
        """Render a measure block at table-child indentation."""
        lines = []
        if measure.description:
            lines.extend(f"\t/// {d}" for d in measure.description.splitlines())
        lines.append(f"\tmeasure {tmdl_name(measure.name)} =")
        lines.extend(f"\t\t\t{l}" if l.strip() else "" for l in measure.expression.strip("\r\n").splitlines())
        if measure.format_string:
            lines.append(f"\t\tformatString: {measure.format_string}")
        if measure.format_string_expression:
            fse_lines = measure.format_string_expression.strip().splitlines()
            if len(fse_lines) == 1:
                lines.append(f"\t\tformatStringDefinition = {fse_lines[0]}")
            else:
                lines.append("\t\tformatStringDefinition =")
                lines.extend(f"\t\t\t\t{l}" for l in fse_lines)
        if measure.display_folder:
            lines.append(f"\t\tdisplayFolder: {measure.display_folder}")
        return "\n".join(lines) + "\n"


def tmdl_name(name: str) -> str:
    """Quote a TMDL object name when it is not a plain identifier."""
    if _PLAIN_TMDL_NAME_RE.match(name):
        return name
    return "'" + name.replace("'", "''") + "'"


def _split_lines(text: str) -> str | list[str]:
    lines = text.split("\n")
    return lines if len(lines) > 1 else text
