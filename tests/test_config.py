"""Tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from surveyflow.config import METADATA_COLUMNS, REQUIRED_COLUMNS, SurveyflowSettings, load_settings


def _load(**overrides: object) -> SurveyflowSettings:
    return load_settings(_env_file=None, **overrides)


class TestDefaults:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SURVEYFLOW_PROJECT_NAME", raising=False)
        settings = _load()
        assert settings.structure_identifier == "templateSurveyQuestions"
        assert settings.required_columns == REQUIRED_COLUMNS
        assert settings.metadata_columns == METADATA_COLUMNS
        assert settings.correlation_mode == "joined"
        assert settings.completion_denominator == "global"
        assert settings.output_dir == Path("output")
        assert settings.write_report is True

    def test_column_lists_not_shared(self) -> None:
        a = _load()
        a.required_columns.append("WAVE")
        assert _load().required_columns == REQUIRED_COLUMNS


class TestLoadSettings:
    def test_none_overrides_dropped(self) -> None:
        settings = _load(project_name=None, output_dir=None)
        assert settings.output_dir == Path("output")

    def test_overrides_applied(self, tmp_path: Path) -> None:
        settings = _load(project_name="Gare de Lyon", output_dir=tmp_path, write_report=False)
        assert settings.project_name == "Gare de Lyon"
        assert settings.output_dir == tmp_path
        assert settings.write_report is False

    def test_mode_names_normalised(self) -> None:
        settings = _load(correlation_mode="Positional", completion_denominator="PER-FLOW")
        assert settings.correlation_mode == "positional"
        assert settings.completion_denominator == "per_flow"


class TestEnvironment:
    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SURVEYFLOW_PROJECT_NAME", "Enquête gare")
        monkeypatch.setenv("SURVEYFLOW_WRITE_REPORT", "false")
        settings = _load()
        assert settings.project_name == "Enquête gare"
        assert settings.write_report is False

    def test_list_from_json(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SURVEYFLOW_REQUIRED_COLUMNS", '["ID_questionnaire", "VAGUE"]')
        assert _load().required_columns == ["ID_questionnaire", "VAGUE"]

    def test_override_beats_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SURVEYFLOW_CORRELATION_MODE", "positional")
        assert _load().correlation_mode == "positional"
        assert _load(correlation_mode="joined").correlation_mode == "joined"

    def test_env_file(self, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text("SURVEYFLOW_STRUCTURE_IDENTIFIER=questions\n", encoding="utf-8")
        settings = SurveyflowSettings(_env_file=env_file)  # type: ignore[call-arg]
        assert settings.structure_identifier == "questions"
