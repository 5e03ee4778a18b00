"""Tier 3 전체 문서 추출 테스트"""

import json
from datetime import date

import pytest

from announcement_extract.config import ThreeTierConfig
from announcement_extract.schema import Confidence, ExtractionResult, FieldGroup, Tier2Result
from announcement_extract.sinks import JsonlFeedbackStore, NullFeedbackStore
from announcement_extract.tier3 import (
    COST_CEILING_REASON,
    Tier3Extractor,
    build_full_extraction_prompt,
    normalize_fields,
)

from conftest import FakeLLM

TIER3_RESPONSE = json.dumps({
    "fields": {
        "deadline": "2025-03-20",
        "budgetAmount": 5200000000,
        "keywords": ["양자컴퓨팅"],
        "contactInfo": None,
        "unknownThing": "x",
    },
    "reasoning": "표 형식 공고로 마감일이 별도 표에 있음",
    "patternSuggestions": [
        {
            "field": "deadline",
            "extractedValue": "2025-03-20",
            "contextSnippet": "접수 마감 | 2025.03.20",
            "suggestedPattern": "접수\\s*마감\\s*\\|\\s*(\\d{4}\\.\\d{2}\\.\\d{2})",
            "failureReason": "표 구분자",
        }
    ],
}, ensure_ascii=False)


@pytest.fixture
def tier1_results():
    return [ExtractionResult(
        field="deadline", group=FieldGroup.A, value=date(2025, 3, 15),
        confidence=Confidence.HIGH, tier=1, source="마감일",
    )]


@pytest.fixture
def tier2_results():
    return [
        Tier2Result(field="keywords", group=FieldGroup.D, value=None,
                    confidence=Confidence.LOW, source="tier2", tokens_used=100),
        Tier2Result(field="primaryTargetIndustry", group=FieldGroup.D, value="반도체",
                    confidence=Confidence.MEDIUM, source="tier2", tokens_used=100),
    ]


class TestPrompt:

    def test_includes_extracted_and_failed(self, tier1_results, tier2_results):
        prompt = build_full_extraction_prompt(tier1_results, tier2_results)
        assert 'deadline: "2025-03-15" (Tier1, HIGH)' in prompt
        assert 'primaryTargetIndustry: "반도체" (Tier2, MEDIUM)' in prompt
        assert "## 추출 실패 필드 (중점 분석)\nkeywords" in prompt
        assert "patternSuggestions" in prompt

    def test_nothing_extracted(self):
        prompt = build_full_extraction_prompt([], [])
        assert "(없음 - 모든 필드 추출 실패)" in prompt
        assert "(모든 필드 재검증 필요)" in prompt


def test_normalize_fields_drops_unknown_and_null():
    fields = normalize_fields({"deadline": "2025.03.20", "contactInfo": None, "bogus": 1, "numAwards": "5"})
    assert fields == {"deadline": date(2025, 3, 20), "numAwards": 5}


class TestExtractAll:

    def test_fields_and_feedback(self, config, cost_sink, feedback_store, tier1_results, tier2_results):
        llm = FakeLLM([TIER3_RESPONSE], input_tokens=4000, output_tokens=1000)
        extractor = Tier3Extractor("job-3", llm, config, cost_sink, feedback_store)
        result = extractor.extract_all("공고문 본문", tier1_results, tier2_results)

        assert result.fields == {
            "deadline": date(2025, 3, 20),
            "budgetAmount": 5_200_000_000,
            "keywords": ["양자컴퓨팅"],
        }
        assert result.tokens_used == 5000
        assert result.cost_krw == pytest.approx(4000 * 0.00675 + 1000 * 0.03375)
        assert result.reasoning.startswith("표 형식")
        assert result.pattern_suggestions[0].suggested_pattern.startswith("접수")

        assert len(feedback_store.records) == 1
        record = feedback_store.records[0]
        assert record.job_id == "job-3"
        assert record.field == "deadline"
        assert record.tier1_value == '"2025-03-15"'
        assert record.tier2_value is None
        assert record.tier3_value == '"2025-03-20"'
        assert record.incorporated is False

        assert cost_sink.records[0].endpoint == "tier3-extraction"
        assert llm.calls[0]["max_tokens"] == 4096

    def test_parse_failure(self, config, cost_sink, feedback_store):
        llm = FakeLLM(["분석 결과를 드릴 수 없습니다"])
        result = Tier3Extractor("job-3", llm, config, cost_sink, feedback_store).extract_all("본문", [], [])

        assert result.fields == {}
        assert result.pattern_suggestions == []
        assert result.reasoning.startswith("응답 파싱 실패")
        assert result.tokens_used == 1200
        assert feedback_store.records == []

    def test_wrong_shape_is_parse_failure(self, config, cost_sink, feedback_store):
        llm = FakeLLM(['{"fields": ["deadline"], "reasoning": "x"}'])
        result = Tier3Extractor("job-3", llm, config, cost_sink, feedback_store).extract_all("본문", [], [])
        assert result.fields == {}
        assert result.reasoning.startswith("응답 파싱 실패")

    def test_null_reasoning_and_suggestions_keep_fields(self, config, cost_sink, feedback_store):
        llm = FakeLLM(['{"fields": {"deadline": "2025-03-20"}, "reasoning": null, "patternSuggestions": null}'])
        result = Tier3Extractor("job-3", llm, config, cost_sink, feedback_store).extract_all("본문", [], [])

        assert result.fields == {"deadline": date(2025, 3, 20)}
        assert result.reasoning == ""
        assert result.pattern_suggestions == []
        assert feedback_store.records == []

    def test_null_fields_is_empty(self, config, cost_sink, feedback_store):
        llm = FakeLLM(['{"fields": null, "reasoning": "본문 없음"}'])
        result = Tier3Extractor("job-3", llm, config, cost_sink, feedback_store).extract_all("본문", [], [])
        assert result.fields == {}
        assert result.reasoning == "본문 없음"

    def test_null_suggestion_parts_and_malformed_suggestion(self, config, cost_sink, feedback_store):
        llm = FakeLLM([json.dumps({
            "fields": {"deadline": "2025-03-20"},
            "reasoning": "표 형식",
            "patternSuggestions": [
                {"field": "deadline", "extractedValue": "2025-03-20", "contextSnippet": None,
                 "suggestedPattern": "마감\\s*(\\d{4}\\.\\d{2}\\.\\d{2})", "failureReason": None},
                {"extractedValue": "필드명 없음"},
                "문자열 제안",
            ],
        }, ensure_ascii=False)])
        result = Tier3Extractor("job-3", llm, config, cost_sink, feedback_store).extract_all("본문", [], [])

        assert result.fields == {"deadline": date(2025, 3, 20)}
        assert len(result.pattern_suggestions) == 1
        suggestion = result.pattern_suggestions[0]
        assert suggestion.context_snippet == ""
        assert suggestion.failure_reason == ""
        assert len(feedback_store.records) == 1
        assert feedback_store.records[0].original_context == ""

    def test_unavailable_feedback_store_is_swallowed(self, config, cost_sink, tier1_results):
        llm = FakeLLM([TIER3_RESPONSE])
        result = Tier3Extractor("job-3", llm, config, cost_sink, NullFeedbackStore()).extract_all(
            "본문", tier1_results, [])
        assert result.fields["deadline"] == date(2025, 3, 20)

    def test_cost_ceiling_skips_call(self, cost_sink, feedback_store):
        config = ThreeTierConfig(max_tier3_cost_per_job=10)
        llm = FakeLLM([])
        result = Tier3Extractor("job-3", llm, config, cost_sink, feedback_store).extract_all("본문", [], [])

        assert llm.calls == []
        assert result.reasoning == COST_CEILING_REASON
        assert result.fields == {}
        assert result.tokens_used == 0
        assert cost_sink.records == []

    def test_text_truncated(self, config, cost_sink, feedback_store):
        llm = FakeLLM([TIER3_RESPONSE])
        Tier3Extractor("job-3", llm, config, cost_sink, feedback_store).extract_all("가" * 16000 + "끝", [], [])
        assert "끝" not in llm.calls[0]["prompt"]


def test_jsonl_feedback_store(tmp_path, config, cost_sink, tier1_results):
    store = JsonlFeedbackStore(tmp_path / "feedback" / "tier3.jsonl")
    llm = FakeLLM([TIER3_RESPONSE])
    Tier3Extractor("job-9", llm, config, cost_sink, store).extract_all("본문", tier1_results, [])

    lines = (tmp_path / "feedback" / "tier3.jsonl").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["pattern_suggestion"].startswith("접수")

    records = store.read()
    assert records[0].job_id == "job-9"
    assert records[0].incorporated is False
