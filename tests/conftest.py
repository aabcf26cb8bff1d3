"""Shared test fixtures for surveyflow tests."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from surveyflow.config import SurveyflowSettings
from surveyflow.models import Question
from surveyflow.stages.structure import decode_structure

STRUCTURE_JS = """\
// Questionnaire de l'enquête gare
export const templateSurveyQuestions = [
  {
    id: 'Q1',
    text: 'Quel est votre rôle ?',
    type: 'singleChoice',
    options: [
      { id: 1, text: 'Voyageur montant', next: 'Q2_MONTANTS' },
      { id: 2, text: 'Voyageur descendant', next: 'end' },
      { id: 3, text: 'Accompagnateur', next: 'Q2_ACCOMPAGNATEURS' },
      { id: 4, text: 'Accompagnateur (taxi)', next: 'Q2_ACCOMPAGNATEURS' },
    ],
  },
  /* Flux montants */
  {
    id: 'Q2_MONTANTS',
    text: 'Comment êtes-vous venu ?',
    type: 'singleChoice',
    options: [
      { id: 1, text: 'A pied', next: 'Q3_MONTANTS' },
      { id: 2, text: 'En bus', next: 'Q3_MONTANTS' },
    ],
  },
  {
    id: 'Q3_MONTANTS',
    text: 'De quelle commune venez-vous ?',
    type: 'commune',
  },
  {
    id: 'Q2_ACCOMPAGNATEURS',
    text: 'Pourquoi accompagnez-vous ?',
    type: 'freeText',
    freeTextPlaceholder: 'Votre réponse',
  },
];
"""


@pytest.fixture(autouse=True)
def _reset_logging():
    """Reset root logger handlers after each test."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    logging.basicConfig(level=logging.WARNING, force=True)


@pytest.fixture
def raw_structure() -> list[dict[str, object]]:
    """The same questionnaire as STRUCTURE_JS, as plain dicts."""
    return [
        {
            "id": "Q1",
            "text": "Quel est votre rôle ?",
            "type": "singleChoice",
            "options": [
                {"id": 1, "text": "Voyageur montant", "next": "Q2_MONTANTS"},
                {"id": 2, "text": "Voyageur descendant", "next": "end"},
                {"id": 3, "text": "Accompagnateur", "next": "Q2_ACCOMPAGNATEURS"},
                {"id": 4, "text": "Accompagnateur (taxi)", "next": "Q2_ACCOMPAGNATEURS"},
            ],
        },
        {
            "id": "Q2_MONTANTS",
            "text": "Comment êtes-vous venu ?",
            "type": "singleChoice",
            "options": [
                {"id": 1, "text": "A pied", "next": "Q3_MONTANTS"},
                {"id": 2, "text": "En bus", "next": "Q3_MONTANTS"},
            ],
        },
        {"id": "Q3_MONTANTS", "text": "De quelle commune venez-vous ?", "type": "commune"},
        {
            "id": "Q2_ACCOMPAGNATEURS",
            "text": "Pourquoi accompagnez-vous ?",
            "type": "freeText",
            "freeTextPlaceholder": "Votre réponse",
        },
    ]


@pytest.fixture
def questions(raw_structure: list[dict[str, object]]) -> list[Question]:
    return decode_structure(raw_structure)


@pytest.fixture
def records() -> list[dict[str, object]]:
    """Five respondents covering every flow."""
    return [
        {"ID_questionnaire": "R1", "ENQUETEUR": "Anne", "DATE": "2024-03-01",
         "Q1": 1, "Q2_MONTANTS": 2, "Q3_MONTANTS": "Lyon"},
        {"ID_questionnaire": "R2", "ENQUETEUR": "Anne", "DATE": "2024-03-01",
         "Q1": "1", "Q2_MONTANTS": "1", "Q3_MONTANTS": "Villeurbanne"},
        {"ID_questionnaire": "R3", "ENQUETEUR": "Marc", "DATE": "2024-03-02",
         "Q1": 2},
        {"ID_questionnaire": "R4", "ENQUETEUR": "Marc", "DATE": "2024-03-02",
         "Q1": 3, "Q2_ACCOMPAGNATEURS": "Ma mère prend le train"},
        {"ID_questionnaire": "R5", "ENQUETEUR": "Marc", "DATE": "2024-03-02",
         "Q1": "x"},
    ]


@pytest.fixture
def settings(tmp_path: Path) -> SurveyflowSettings:
    """Settings isolated from any .env or environment on the test machine."""
    return SurveyflowSettings(
        _env_file=None,  # type: ignore[call-arg]
        output_dir=tmp_path / "output",
    )


@pytest.fixture
def structure_js() -> str:
    return STRUCTURE_JS
