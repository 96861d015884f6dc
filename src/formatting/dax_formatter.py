"""DAX expression formatting: local whitespace normalisation or the daxformatter.com service."""

import logging

import requests

logger = logging.getLogger(__name__)

DAX_FORMATTER_URL = "https://www.daxformatter.com/api/daxformatter/DaxTextFormat"
REQUEST_TIMEOUT_SECONDS = 15

# Delimited literals that must be copied verbatim: (opening char, closing char)
_LITERALS = {'"': '"', "'": "'", "[": "]"}


def canonical_expression(text: str) -> str:
    """Remove all whitespace so expressions can be compared regardless of layout."""
    return "".join((text or "").split())


class _Token:
    __slots__ = ("text", "kind", "spaced")

    def __init__(self, text: str, kind: str, spaced: bool):
        self.text = text
        self.kind = kind
        self.spaced = spaced


def _tokenize(expression: str) -> list[_Token]:
    """Split DAX into significant tokens, remembering whether whitespace preceded each."""
    tokens: list[_Token] = []
    spaced = False
    word: list[str] = []
    i = 0
    n = len(expression)

    def flush_word():
        nonlocal spaced
        if word:
            tokens.append(_Token("".join(word), "word", spaced))
            word.clear()
            spaced = False

    while i < n:
        ch = expression[i]
        if ch.isspace():
            flush_word()
            spaced = True
            i += 1
        elif ch in _LITERALS:
            flush_word()
            close = _LITERALS[ch]
            j = i + 1
            while j < n:
                if expression[j] == close:
                    # Doubled closing char is an escape inside the literal
                    if j + 1 < n and expression[j + 1] == close:
                        j += 2
                        continue
                    break
                j += 1
            tokens.append(_Token(expression[i:j + 1], "literal", spaced))
            spaced = False
            i = j + 1
        elif expression.startswith("//", i) or expression.startswith("--", i):
            flush_word()
            end = expression.find("\n", i)
            end = n if end == -1 else end
            tokens.append(_Token(expression[i:end].rstrip(), "line_comment", spaced))
            spaced = False
            i = end
        elif expression.startswith("/*", i):
            flush_word()
            end = expression.find("*/", i + 2)
            end = n if end == -1 else end + 2
            tokens.append(_Token(expression[i:end], "literal", spaced))
            spaced = False
            i = end
        elif ch in "(),":
            flush_word()
            tokens.append(_Token(ch, ch, spaced))
            spaced = False
            i += 1
        else:
            word.append(ch)
            i += 1
    flush_word()
    return tokens


class LocalDaxFormatter:
    """Whitespace-only formatting in DAX Formatter's short-line style.

    ``Local_PY([Sales])`` becomes ``Local_PY ( [Sales] )``. String literals,
    quoted table names, bracketed names and comments are copied verbatim,
    so the canonical form of the expression never changes.
    """

    def format(self, expression: str) -> str:
        tokens = _tokenize(expression)
        parts: list[str] = []
        prev: _Token | None = None
        for tok in tokens:
            parts.append(self._separator(prev, tok))
            parts.append(tok.text)
            prev = tok
        return "".join(parts)

    @staticmethod
    def _separator(prev: _Token | None, tok: _Token) -> str:
        if prev is None:
            return ""
        if prev.kind == "line_comment":
            return "\n"
        if tok.kind == ")" and prev.kind == "(":
            return ""
        if tok.kind in ("(", ")") or prev.kind in ("(", ","):
            return " "
        if tok.kind == ",":
            return ""
        return " " if tok.spaced else ""


class NullDaxFormatter:
    """Leaves expressions exactly as built."""

    def format(self, expression: str) -> str:
        return expression


class DaxFormatterClient:
    """Formats expressions with the daxformatter.com web API.

    Falls back to local formatting when the service is unreachable, reports
    errors, or returns something that differs from the input by more than
    whitespace.
    """

    def __init__(
        self,
        url: str = DAX_FORMATTER_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self._fallback = LocalDaxFormatter()

    def format(self, expression: str) -> str:
        payload = {
            "Dax": expression,
            "ListSeparator": ",",
            "DecimalSeparator": ".",
            "MaxLineLength": 0,
            "SkipSpaceAfterFunctionName": False,
            "CallerApp": "pbi-measure-generator",
        }
        try:
            resp = self.session.post(self.url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
            result = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"DAX Formatter request failed, formatting locally: {e}")
            return self._fallback.format(expression)

        errors = result.get("errors") or []
        formatted = (result.get("formatted") or "").strip()
        if errors or not formatted:
            logger.warning(f"DAX Formatter reported errors for '{expression}': {errors}")
            return self._fallback.format(expression)
        if canonical_expression(formatted) != canonical_expression(expression):
            logger.warning(f"DAX Formatter changed more than whitespace in '{expression}', formatting locally")
            return self._fallback.format(expression)
        return formatted


def get_formatter(mode: str = "local", url: str = DAX_FORMATTER_URL):
    """Return a formatter for 'local', 'service' or 'none'."""
    if mode == "local":
        return LocalDaxFormatter()
    if mode == "service":
        return DaxFormatterClient(url=url)
    if mode == "none":
        return NullDaxFormatter()
    raise ValueError(f"Unknown DAX formatter mode: {mode!r}. Expected 'local', 'service' or 'none'.")
