"""Synchronous prompts used while generating measures.

Each prompt blocks until answered. ``None`` from ``request_selection`` or
``request_text`` means the user cancelled.
"""

import logging
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class Prompter(ABC):
    """Interface for the dialogs shown during a run."""

    @abstractmethod
    def request_selection(self, title: str, options: list[str]) -> list[str] | None:
        raise NotImplementedError

    @abstractmethod
    def request_text(self, title: str, prompt: str, default: str = "") -> str | None:
        raise NotImplementedError

    @abstractmethod
    def confirm(self, title: str, message: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def inform(self, title: str, message: str) -> None:
        raise NotImplementedError


class ConsolePrompter(Prompter):
    """Prompts on stdin/stdout for the command-line scripts."""

    def __init__(self, assume_yes: bool = False, stdin=None, stdout=None):
        self.assume_yes = assume_yes
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout

    def _write(self, text: str = "") -> None:
        print(text, file=self.stdout)

    def _read(self, prompt: str) -> str | None:
        self.stdout.write(prompt)
        self.stdout.flush()
        line = self.stdin.readline()
        if not line:
            return None  # EOF
        return line.rstrip("\r\n")

    def request_selection(self, title: str, options: list[str]) -> list[str] | None:
        self._write(f"\n{title}")
        for idx, option in enumerate(options, start=1):
            self._write(f"  {idx:>3}. {option}")
        answer = self._read("Enter numbers or names separated by commas (empty to cancel): ")
        if answer is None or not answer.strip():
            return None

        chosen: list[str] = []
        for part in answer.split(","):
            part = part.strip()
            if not part:
                continue
            if part.isdigit() and 1 <= int(part) <= len(options):
                value = options[int(part) - 1]
            elif part in options:
                value = part
            else:
                logger.warning(f"Ignoring unknown choice: {part}")
                continue
            if value not in chosen:
                chosen.append(value)
        return chosen

    def request_text(self, title: str, prompt: str, default: str = "") -> str | None:
        self._write(f"\n{title}")
        answer = self._read(f"{prompt} [{default}]: ")
        if answer is None:
            return None
        return answer if answer.strip() else default

    def confirm(self, title: str, message: str) -> bool:
        self._write(f"\n{title}\n{message}")
        if self.assume_yes:
            self._write("Continuing (--yes).")
            return True
        answer = self._read("Continue? [y/N]: ")
        return bool(answer) and answer.strip().lower() in ("y", "yes")

    def inform(self, title: str, message: str) -> None:
        self._write(f"\n{title}\n{message}")


@dataclass
class ScriptedPrompter(Prompter):
    """Answers prompts from pre-recorded values.

    Used by the Streamlit app, which collects every answer on the page
    before the run starts, and by tests.

    Attributes:
        selection: Options to choose, or None to cancel the selection dialog.
        texts: Answers keyed by the prompt's default value (the function name
            or prefix being asked about). Missing keys return the default.
        cancel_texts: When True every text prompt is cancelled.
        confirm_answer: Answer given to OK/Cancel confirmations.
    """

    selection: list[str] | None = None
    texts: dict[str, str] = field(default_factory=dict)
    cancel_texts: bool = False
    confirm_answer: bool = True
    calls: list[tuple[str, str]] = field(default_factory=list)
    messages: list[tuple[str, str]] = field(default_factory=list)

    def request_selection(self, title: str, options: list[str]) -> list[str] | None:
        self.calls.append(("selection", title))
        if self.selection is None:
            return None
        return [o for o in options if o in self.selection]

    def request_text(self, title: str, prompt: str, default: str = "") -> str | None:
        self.calls.append(("text", default))
        if self.cancel_texts:
            return None
        return self.texts.get(default, default)

    def confirm(self, title: str, message: str) -> bool:
        self.calls.append(("confirm", title))
        self.messages.append((title, message))
        return self.confirm_answer

    def inform(self, title: str, message: str) -> None:
        self.calls.append(("inform", title))
        self.messages.append((title, message))
