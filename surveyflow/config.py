"""Application settings loaded from environment variables or .env files."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_STRUCTURE_IDENTIFIER = "templateSurveyQuestions"

ID_COLUMN = "ID_questionnaire"

REQUIRED_COLUMNS = [ID_COLUMN, "ENQUETEUR", "DATE"]
METADATA_COLUMNS = [ID_COLUMN, "ENQUETEUR", "DATE", "JOUR", "HEURE_DEBUT", "HEURE_FIN"]


def _find_env_files() -> list[Path]:
    """Find .env files to load: the project directory, then upward from CWD.

    Later entries win in pydantic-settings, so a .env next to where the
    command is run overrides the one shipped beside the package.
    """
    candidates: list[Path] = []

    pkg_env = Path(__file__).resolve().parent.parent / ".env"
    if pkg_env.is_file():
        candidates.append(pkg_env)

    cwd = Path.cwd().resolve()
    for parent in [cwd, *cwd.parents]:
        env_path = parent / ".env"
        if env_path.is_file() and env_path not in candidates:
            candidates.append(env_path)
            break

    return candidates


class SurveyflowSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SURVEYFLOW_",
        env_file=_find_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Project
    project_name: str = "Survey"

    # Structure file
    structure_identifier: str = DEFAULT_STRUCTURE_IDENTIFIER

    # Response table
    required_columns: list[str] = Field(default_factory=lambda: list(REQUIRED_COLUMNS))
    metadata_columns: list[str] = Field(default_factory=lambda: list(METADATA_COLUMNS))

    # Analysis
    correlation_mode: str = "joined"  # "joined" (by respondent) or "positional"
    completion_denominator: str = "global"  # "global" or "per_flow"

    # Output
    output_dir: Path = Path("output")
    write_report: bool = True


def load_settings(**overrides: object) -> SurveyflowSettings:
    """Load settings with optional CLI overrides.

    ``None`` overrides are dropped so unset CLI options fall through to the
    environment or the defaults.  Mode names are lower-cased.
    """
    clean = {k: v for k, v in overrides.items() if v is not None}
    for key in ("correlation_mode", "completion_denominator"):
        if isinstance(clean.get(key), str):
            clean[key] = clean[key].lower().replace("-", "_")  # type: ignore[union-attr]
    return SurveyflowSettings(**clean)  # type: ignore[arg-type]
