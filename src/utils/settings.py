"""Persistent settings for the measure generator CLIs and Streamlit app."""

import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path(__file__).resolve().parent.parent.parent / ".measure_settings.json"


@dataclass
class AppSettings:
    """User settings persisted between sessions."""

    local_function_prefix: str = "Local"
    comparison_function_prefix: str = "Comparison"
    naming_mode: str = "ask_suffix"
    dax_formatter: str = "local"
    dax_formatter_url: str = "https://www.daxformatter.com/api/daxformatter/DaxTextFormat"
    last_model_path: str = ""


def load_settings(path: Path | None = None) -> AppSettings:
    """Load settings from JSON file. Returns defaults if file is missing."""
    settings_path = path or DEFAULT_SETTINGS_PATH
    if settings_path.exists():
        try:
            data = json.loads(settings_path.read_text(encoding="utf-8"))
            known = {f for f in AppSettings.__dataclass_fields__}
            filtered = {k: v for k, v in data.items() if k in known}
            return AppSettings(**filtered)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Failed to load settings: {e}")
    return AppSettings()


def save_settings(settings: AppSettings, path: Path | None = None) -> None:
    """Save settings to JSON file."""
    settings_path = path or DEFAULT_SETTINGS_PATH
    settings_path.write_text(
        json.dumps(asdict(settings), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
