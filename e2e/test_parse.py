"""parse_llm_json tests: fences, commentary and probability clamping."""

import pytest

from schemas.analysis import ResolutionAssessment
from schemas.reasoning import Critique, Hypotheses
from utils.parse import LLMParseError, parse_llm_json


class TestParseLLMJson:
    def test_plain_json(self):
        result = parse_llm_json('{"resolution_confidence": 0.4, "reason": "still raining"}', ResolutionAssessment)
        assert result.resolution_confidence == 0.4

    def test_code_fence(self):
        raw = '```json\n{"resolution_confidence": 0.9, "reason": "calm"}\n```'
        assert parse_llm_json(raw, ResolutionAssessment).reason == "calm"

    def test_leading_commentary(self):
        raw = 'Here is my verdict: {"resolution_confidence": 0.2} Hope that helps.'
        assert parse_llm_json(raw, ResolutionAssessment).resolution_confidence == 0.2

    def test_nested_probabilities_clamped(self):
        raw = '{"hypotheses": [{"event_type": "flood", "likelihood": 1.4}, {"event_type": "fire", "likelihood": -0.2}]}'
        result = parse_llm_json(raw, Hypotheses)
        assert [h.likelihood for h in result.hypotheses] == [1.0, 0.0]

    def test_signed_adjustment_not_clamped(self):
        result = parse_llm_json('{"confidence_adjustment": -0.3}', Critique)
        assert result.confidence_adjustment == -0.3

    def test_empty_raises(self):
        with pytest.raises(LLMParseError, match="Empty"):
            parse_llm_json("", ResolutionAssessment)

    def test_no_json_raises_with_raw(self):
        with pytest.raises(LLMParseError) as exc_info:
            parse_llm_json("I cannot answer that.", ResolutionAssessment)
        assert exc_info.value.raw == "I cannot answer that."

    def test_schema_mismatch_raises(self):
        with pytest.raises(LLMParseError, match="does not match schema"):
            parse_llm_json('{"reason": "no confidence given"}', ResolutionAssessment)
