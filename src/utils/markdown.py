"""Markdown formatting helpers for run reports."""


class MarkdownHelper:
    """Utility class for generating GitHub-flavored Markdown."""

    @staticmethod
    def heading(text: str, level: int = 1) -> str:
        level = max(1, min(6, level))
        return f"{'#' * level} {text}"

    @staticmethod
    def table(headers: list[str], rows: list[list[str]]) -> str:
        """Render a left-aligned table. Short rows are padded, long rows cut to the header width."""
        if not headers:
            return ""

        width = len(headers)
        lines = [
            MarkdownHelper._row(headers),
            MarkdownHelper._row(["---"] * width),
        ]
        for row in rows:
            lines.append(MarkdownHelper._row((list(row) + [""] * width)[:width]))
        return "\n".join(lines)

    @staticmethod
    def _row(cells) -> str:
        return "| " + " | ".join(MarkdownHelper.escape_cell(c) for c in cells) + " |"

    @staticmethod
    def code(text: str) -> str:
        """Inline code span; DAX may contain backticks only in string literals."""
        fence = "``" if "`" in text else "`"
        return f"{fence}{text}{fence}"

    @staticmethod
    def escape_cell(text) -> str:
        """Escape pipes and flatten newlines for use inside Markdown table cells."""
        if text is None:
            return ""
        return " ".join(str(text).split("\n")).replace("|", "\\|")
