"""Tests for surveyflow.stages.mapping: response mapping and validation."""

from __future__ import annotations

from datetime import date

import pytest

from surveyflow.errors import MappingError
from surveyflow.models import (
    ChoiceQuestion,
    FindingCode,
    FlowType,
    MappedRespondent,
    MappedResponse,
    OpenQuestion,
    Option,
)
from surveyflow.stages.mapping import (
    NO_RESPONSES_ERROR,
    UNKNOWN_FLOW_ERROR,
    get_mapping_findings,
    map_respondent,
    map_responses,
    respondent_id,
    response_validation_error,
    validate_mapped_data,
    validate_response,
)


@pytest.fixture
def choice() -> ChoiceQuestion:
    return ChoiceQuestion(
        id="Q2_MONTANTS",
        text="Mode?",
        type="singleChoice",
        options=[Option(id=1, text="A pied", next="end"), Option(id=2, text="Bus", next="end")],
    )


# ---------------------------------------------------------------------------
# map_respondent / map_responses
# ---------------------------------------------------------------------------


class TestMapRespondent:
    def test_montant_gets_only_montants_questions(self, questions: list, records: list) -> None:
        respondent = map_respondent(questions, records[0])
        assert respondent.id == "R1"
        assert respondent.flow_type == FlowType.MONTANTS
        assert [r.question_id for r in respondent.responses] == ["Q1", "Q2_MONTANTS", "Q3_MONTANTS"]

    def test_labels_resolved_for_choice_questions(self, questions: list, records: list) -> None:
        responses = map_respondent(questions, records[1]).responses
        assert responses[0].raw_value == "1"
        assert responses[0].label == "Voyageur montant"
        assert responses[1].label == "A pied"
        assert responses[2].label is None

    def test_descendant_gets_only_q1(self, questions: list, records: list) -> None:
        respondent = map_respondent(questions, records[2])
        assert respondent.flow_type == FlowType.DESCENDANTS
        assert [r.question_id for r in respondent.responses] == ["Q1"]

    def test_absent_key_skipped_but_empty_string_kept(self, questions: list) -> None:
        record = {"ID_questionnaire": "R9", "Q1": 1, "Q2_MONTANTS": ""}
        responses = map_respondent(questions, record).responses
        assert [r.question_id for r in responses] == ["Q1", "Q2_MONTANTS"]
        assert responses[1].raw_value == ""
        assert responses[1].label is None

    def test_unknown_flow_sees_every_present_column(self, questions: list) -> None:
        record = {"Q1": "x", "Q2_MONTANTS": 1, "Q2_ACCOMPAGNATEURS": "texte"}
        respondent = map_respondent(questions, record, index=6)
        assert respondent.flow_type == FlowType.UNKNOWN
        assert respondent.id == "Respondent_7"
        assert [r.question_id for r in respondent.responses] == ["Q1", "Q2_MONTANTS", "Q2_ACCOMPAGNATEURS"]

    def test_response_type_follows_question(self, questions: list, records: list) -> None:
        responses = map_respondent(questions, records[0]).responses
        assert [r.response_type for r in responses] == ["singleChoice", "singleChoice", "commune"]


class TestRespondentId:
    def test_uses_id_column(self) -> None:
        assert respondent_id({"ID_questionnaire": "ABC"}, 0) == "ABC"

    def test_numeric_id(self) -> None:
        assert respondent_id({"ID_questionnaire": 42}, 0) == "42"
        assert respondent_id({"ID_questionnaire": 42.0}, 0) == "42"

    def test_fallback_is_one_based(self) -> None:
        assert respondent_id({}, 0) == "Respondent_1"
        assert respondent_id({"ID_questionnaire": ""}, 2) == "Respondent_3"


class TestMapResponses:
    def test_maps_every_row(self, questions: list, records: list) -> None:
        mapped = map_responses(questions, records)
        assert [r.id for r in mapped] == ["R1", "R2", "R3", "R4", "R5"]

    def test_empty_records(self, questions: list) -> None:
        assert map_responses(questions, []) == []

    def test_none_structure(self, records: list) -> None:
        with pytest.raises(MappingError, match="structure"):
            map_responses(None, records)

    def test_none_records(self, questions: list) -> None:
        with pytest.raises(MappingError, match="response data"):
            map_responses(questions, None)

    def test_non_list_structure(self, records: list) -> None:
        with pytest.raises(MappingError):
            map_responses("Q1,Q2", records)  # type: ignore[arg-type]

    def test_unsupported_cell_type(self, questions: list) -> None:
        rows = [{"ID_questionnaire": "R1", "DATE": date(2023, 1, 1), "Q1": "1"}]
        with pytest.raises(MappingError, match=r'row 1, column "DATE" holds a date'):
            map_responses(questions, rows)

    def test_boolean_cell_rejected(self, questions: list) -> None:
        with pytest.raises(MappingError, match="bool"):
            map_responses(questions, [{"Q1": True}])

    def test_row_that_is_not_a_record(self, questions: list) -> None:
        with pytest.raises(MappingError, match="row 2 is not a record"):
            map_responses(questions, [{"Q1": 1}, ["Q1", 1]])

    def test_none_cell_is_absent(self, questions: list) -> None:
        [respondent] = map_responses(questions, [{"Q1": 1, "Q2_MONTANTS": None, "Q3_MONTANTS": ""}])
        assert [r.question_id for r in respondent.responses] == ["Q1", "Q3_MONTANTS"]


# ---------------------------------------------------------------------------
# validate_response
# ---------------------------------------------------------------------------


class TestValidateResponse:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("", True),
            (None, True),
            (1, True),
            ("2", True),
            (2.0, True),
            (3, False),
            ("x", False),
            ("0", False),
        ],
    )
    def test_choice_table(self, choice: ChoiceQuestion, value: object, expected: bool) -> None:
        assert validate_response(choice, value) is expected

    @pytest.mark.parametrize("qtype", ["freeText", "commune", "street", "gare"])
    def test_open_types_accept_anything(self, qtype: str) -> None:
        question = OpenQuestion(id="Q9", text="?", type=qtype)
        assert validate_response(question, "n'importe quoi")
        assert validate_response(question, 12345)
        assert validate_response(question, "")


class TestResponseValidationError:
    def test_names_value_and_valid_options(self, choice: ChoiceQuestion) -> None:
        message = response_validation_error(choice, 7)
        assert '"7"' in message
        assert "1, 2" in message

    def test_not_a_number(self, choice: ChoiceQuestion) -> None:
        assert '"bus"' in response_validation_error(choice, "bus")

    def test_open_question(self) -> None:
        question = OpenQuestion(id="Q9", text="?", type="gare")
        assert "gare" in response_validation_error(question, "x")


# ---------------------------------------------------------------------------
# validate_mapped_data
# ---------------------------------------------------------------------------


class TestValidateMappedData:
    def test_marks_invalid_choice(self, questions: list) -> None:
        mapped = map_responses(questions, [{"ID_questionnaire": "R1", "Q1": 1, "Q2_MONTANTS": 9}])
        validate_mapped_data(mapped, questions)
        q1, q2 = mapped[0].responses
        assert q1.is_valid and q1.validation_error is None
        assert not q2.is_valid
        assert "Valid options: 1, 2" in q2.validation_error

    def test_mutates_in_place_and_returns_same_list(self, questions: list, records: list) -> None:
        mapped = map_responses(questions, records)
        assert validate_mapped_data(mapped, questions) is mapped

    def test_respondent_level_errors(self, questions: list, records: list) -> None:
        mapped = validate_mapped_data(map_responses(questions, records), questions)
        by_id = {r.id: r for r in mapped}
        assert by_id["R1"].validation_errors is None
        assert by_id["R5"].validation_errors == [UNKNOWN_FLOW_ERROR]

    def test_no_responses(self, questions: list) -> None:
        mapped = validate_mapped_data(map_responses(questions, [{"Q2_MONTANTS": 1}]), questions)
        # Q1 absent: UNKNOWN flow, and Q2_MONTANTS is the only mapped answer
        assert mapped[0].validation_errors == [UNKNOWN_FLOW_ERROR]
        empty = validate_mapped_data(map_responses([], [{"Q1": 2}]), [])
        assert empty[0].responses == []
        assert empty[0].validation_errors == [NO_RESPONSES_ERROR]

    def test_unknown_question_is_invalid(self, questions: list) -> None:
        respondent = MappedRespondent(
            id="R1",
            flow_type=FlowType.MONTANTS,
            responses=[MappedResponse(
                question_id="Q99_MONTANTS",
                question_text="?",
                response_type="freeText",
                raw_value="x",
            )],
        )
        validate_mapped_data([respondent], questions)
        response = respondent.responses[0]
        assert not response.is_valid
        assert "Q99_MONTANTS" in response.validation_error


# ---------------------------------------------------------------------------
# get_mapping_findings
# ---------------------------------------------------------------------------


class TestGetMappingFindings:
    def test_none_and_empty(self) -> None:
        assert get_mapping_findings(None)[0].code == FindingCode.NO_MAPPED_DATA
        assert get_mapping_findings([])[0].code == FindingCode.NO_MAPPED_DATA

    def test_clean_data_has_no_findings(self, questions: list, records: list) -> None:
        mapped = validate_mapped_data(map_responses(questions, records[:4]), questions)
        assert get_mapping_findings(mapped) == []

    def test_breakdowns_sorted_by_frequency(self, questions: list) -> None:
        rows = [
            {"ID_questionnaire": "A", "Q1": 1, "Q2_MONTANTS": 9},
            {"ID_questionnaire": "B", "Q1": 1, "Q2_MONTANTS": 9},
            {"ID_questionnaire": "C", "Q1": 1, "Q2_MONTANTS": "bus"},
            {"ID_questionnaire": "D", "Q1": "nope"},
            {"ID_questionnaire": "E", "Q1": 9, "Q2_MONTANTS": 1},
        ]
        mapped = validate_mapped_data(map_responses(questions, rows), questions)
        findings = get_mapping_findings(mapped)
        codes = [f.code for f in findings]

        assert codes[0] == FindingCode.UNKNOWN_FLOW
        assert findings[0].count == 2

        invalid = findings[codes.index(FindingCode.INVALID_RESPONSES)]
        # A, B, C on Q2_MONTANTS; D and E on Q1
        assert invalid.count == 5

        details = [f for f in findings if f.code == FindingCode.INVALID_RESPONSE_DETAIL]
        counts = [f.count for f in details]
        assert counts == sorted(counts, reverse=True)
        assert details[0].count == 2 and '"9"' in details[0].message

        per_question = [f for f in findings if f.code == FindingCode.QUESTION_ERRORS]
        assert [(f.question_id, f.count) for f in per_question] == [("Q2_MONTANTS", 3), ("Q1", 2)]
