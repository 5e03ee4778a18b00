"""Tier 2 그룹 추출 테스트"""

import json

import pytest

from announcement_extract.config import ThreeTierConfig
from announcement_extract.exceptions import LLMProviderError
from announcement_extract.orchestrator import JobContext
from announcement_extract.registry import AnnouncementField
from announcement_extract.schema import Confidence, FieldGroup, ParseFailure
from announcement_extract.tier2 import Tier2Extractor, build_group_prompt, parse_group_response

from conftest import FakeLLM

F = AnnouncementField

GROUP_C_FIELDS = [F.LEAD_ROLE_ALLOWED, F.CO_ROLE_ALLOWED, F.REQUIRES_RESEARCH_INSTITUTE]
GROUP_D_FIELDS = [F.KEYWORDS, F.PRIMARY_TARGET_INDUSTRY]

GROUP_C_RESPONSE = json.dumps({
    "leadRoleAllowed": ["중소기업", "중견기업"],
    "coRoleAllowed": None,
    "requiresResearchInstitute": "null",
}, ensure_ascii=False)

GROUP_D_RESPONSE = '```json\n{"keywords": ["인공지능", "반도체"], "primaryTargetIndustry": "반도체"}\n```'

# 1000 입력 토큰 x 0.00135 + 200 출력 토큰 x 0.00675
CALL_COST = 1000 * 0.00135 + 200 * 0.00675


def _job(config, text="공고문"):
    return JobContext(job_id="job-1", text=text, config=config)


class TestPrompt:

    def test_lists_only_missing_fields(self):
        prompt = build_group_prompt(FieldGroup.C, [F.LEAD_ROLE_ALLOWED])
        assert '"leadRoleAllowed": <값 또는 null>' in prompt
        assert "coRoleAllowed" not in prompt
        assert "지원자격" in prompt

    def test_budget_rules(self):
        prompt = build_group_prompt(FieldGroup.B, [F.BUDGET_AMOUNT])
        assert "억원 = ×100,000,000" in prompt


class TestParseGroupResponse:

    def test_fenced_json(self):
        assert parse_group_response(GROUP_D_RESPONSE)["primaryTargetIndustry"] == "반도체"

    def test_no_json(self):
        result = parse_group_response("죄송합니다, 찾을 수 없습니다")
        assert isinstance(result, ParseFailure)

    def test_broken_json(self):
        result = parse_group_response('{"keywords": [인공지능]}')
        assert isinstance(result, ParseFailure)
        assert result.preview.startswith('{"keywords"')


class TestExtractGroup:

    def test_values_and_confidence(self, config, cost_sink):
        llm = FakeLLM([GROUP_C_RESPONSE])
        extractor = Tier2Extractor("job-1", llm, config, cost_sink)
        results = {r.field: r for r in extractor.extract_group(FieldGroup.C, GROUP_C_FIELDS, "공고문")}

        assert results["leadRoleAllowed"].value == ["중소기업", "중견기업"]
        assert results["leadRoleAllowed"].confidence is Confidence.MEDIUM
        assert results["coRoleAllowed"].value is None
        assert results["coRoleAllowed"].confidence is Confidence.LOW
        assert results["requiresResearchInstitute"].value is None
        assert results["requiresResearchInstitute"].confidence is Confidence.LOW
        assert all(r.tier == 2 for r in results.values())
        assert all(r.tokens_used == 400 for r in results.values())

    def test_cost_reported(self, config, cost_sink):
        llm = FakeLLM([GROUP_C_RESPONSE])
        job = _job(config)
        Tier2Extractor("job-1", llm, config, cost_sink).extract_group(FieldGroup.C, GROUP_C_FIELDS, "공고문", job=job)

        assert job.cost_krw == pytest.approx(CALL_COST)
        assert len(cost_sink.records) == 1
        record = cost_sink.records[0]
        assert record.endpoint == "tier2-extraction"
        assert record.total_tokens == 1200
        assert record.cost_krw == pytest.approx(CALL_COST)
        assert record.success is True

    def test_parse_failure_contributes_nothing(self, config, cost_sink):
        llm = FakeLLM(["JSON 없음"])
        extractor = Tier2Extractor("job-1", llm, config, cost_sink)
        results = extractor.extract_group(FieldGroup.C, GROUP_C_FIELDS, "공고문")
        assert results == []
        assert extractor.total_tokens == 1200

    def test_text_truncated(self, config, cost_sink):
        llm = FakeLLM([GROUP_C_RESPONSE])
        extractor = Tier2Extractor("job-1", llm, config, cost_sink)
        extractor.extract_fields("가" * 5000 + "끝", {FieldGroup.C: GROUP_C_FIELDS}, [FieldGroup.C])
        prompt = llm.calls[0]["prompt"]
        assert "가" * 4000 in prompt
        assert "끝" not in prompt
        assert llm.calls[0]["max_tokens"] == 1024


class TestExtractFields:

    def test_groups_in_order(self, config, cost_sink):
        llm = FakeLLM([GROUP_C_RESPONSE, GROUP_D_RESPONSE])
        extractor = Tier2Extractor("job-1", llm, config, cost_sink)
        missing = {FieldGroup.A: [], FieldGroup.C: GROUP_C_FIELDS, FieldGroup.D: GROUP_D_FIELDS}
        results = extractor.extract_fields("공고문", missing, [FieldGroup.A, FieldGroup.C, FieldGroup.D], job=_job(config))

        assert len(llm.calls) == 2
        assert [r.group for r in results] == [FieldGroup.C] * 3 + [FieldGroup.D] * 2
        values = {r.field: r.value for r in results}
        assert values["keywords"] == ["인공지능", "반도체"]

    def test_ceiling_skips_remaining_groups(self, cost_sink):
        config = ThreeTierConfig(max_tier2_cost_per_job=1.0)
        llm = FakeLLM([GROUP_C_RESPONSE, GROUP_D_RESPONSE])
        job = _job(config)
        missing = {FieldGroup.C: GROUP_C_FIELDS, FieldGroup.D: GROUP_D_FIELDS}
        results = Tier2Extractor("job-1", llm, config, cost_sink).extract_fields(
            "공고문", missing, [FieldGroup.C, FieldGroup.D], job=job)

        assert len(llm.calls) == 1
        assert {r.group for r in results} == {FieldGroup.C}
        assert job.cost_krw == pytest.approx(CALL_COST)

    def test_zero_ceiling_makes_no_calls(self, cost_sink):
        config = ThreeTierConfig(max_tier2_cost_per_job=0)
        llm = FakeLLM([])
        results = Tier2Extractor("job-1", llm, config, cost_sink).extract_fields(
            "공고문", {FieldGroup.C: GROUP_C_FIELDS}, [FieldGroup.C], job=_job(config))
        assert results == []
        assert llm.calls == []

    def test_group_error_does_not_stop_later_groups(self, config, cost_sink):
        llm = FakeLLM([LLMProviderError("timeout"), GROUP_D_RESPONSE])
        missing = {FieldGroup.C: GROUP_C_FIELDS, FieldGroup.D: GROUP_D_FIELDS}
        results = Tier2Extractor("job-1", llm, config, cost_sink).extract_fields(
            "공고문", missing, [FieldGroup.C, FieldGroup.D])

        assert {r.group for r in results} == {FieldGroup.D}
        assert [r.success for r in cost_sink.records] == [False, True]
