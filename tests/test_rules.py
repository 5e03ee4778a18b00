"""Tier 1 규칙 추출 테스트"""

from datetime import date

from announcement_extract.registry import AnnouncementField
from announcement_extract.rules import (
    DEFAULT_EXTRACTOR,
    RuleExtractor,
    get_missing_fields_by_group,
    group_has_missing_fields,
    run_tier1,
)
from announcement_extract.schema import Confidence, FieldGroup

F = AnnouncementField


def _by_field(results):
    return {r.field: r for r in results}


class TestRunTier1:

    def test_deadline_alone(self):
        results = run_tier1("접수마감일: 2025-03-15")
        assert len(results) == 1
        assert results[0].field == "deadline"
        assert results[0].value == date(2025, 3, 15)
        assert results[0].confidence is Confidence.HIGH
        assert results[0].tier == 1
        assert results[0].group is FieldGroup.A

    def test_korean_date_format(self):
        results = _by_field(run_tier1("신청기한: 2025년 4월 30일"))
        assert results["deadline"].value == date(2025, 4, 30)

    def test_empty_text(self):
        assert run_tier1("") == []

    def test_sample_announcement(self, sample_text):
        results = _by_field(run_tier1(sample_text))

        assert results["publishedAt"].value == date(2025, 1, 10)
        assert results["applicationStart"].value == date(2025, 2, 1)
        assert results["deadline"].value == date(2025, 3, 15)
        assert results["deadlineTimeRule"].value == "18:00"
        assert results["submissionSystem"].value.startswith("IRIS")
        assert results["contactInfo"].value == "정보통신기획평가원 042-612-8000"
        assert results["budgetAmount"].value == 5_200_000_000
        assert results["budgetAmount"].confidence is Confidence.HIGH
        assert results["budgetPerProject"].value == 300_000_000
        assert results["fundingRate"].value == "정부 75%, 민간 25%"
        assert results["fundingPeriod"].value == "3년"
        assert results["numAwards"].value == 10
        assert results["targetType"].value == ["COMPANY", "RESEARCH_INSTITUTE", "UNIVERSITY"]
        assert results["targetType"].confidence is Confidence.MEDIUM
        assert len(results) == 12

    def test_idempotent(self, sample_text):
        assert run_tier1(sample_text) == run_tier1(sample_text)

    def test_future_published_date_rejected(self):
        results = _by_field(run_tier1("공고일: 2999-01-01"))
        assert "publishedAt" not in results

    def test_matching_fund_only(self):
        results = _by_field(run_tier1("기업은 대응자금 25% 이상 부담"))
        assert results["fundingRate"].value == "정부 75%, 민간 25%"

    def test_direct_won_budget(self):
        results = _by_field(run_tier1("금 액: 45,000,000원"))
        assert results["budgetAmount"].value == 45_000_000

    def test_named_certifications_distinct(self):
        results = _by_field(run_tier1("벤처기업 또는 INNO-BIZ 인증 보유, 벤처기업 우대"))
        assert results["requiredCertifications"].value == ["벤처기업", "INNO-BIZ"]

    def test_funding_period_range(self):
        results = _by_field(run_tier1("사업 수행은 2년 ~ 3년 범위"))
        assert results["fundingPeriod"].value == "2년~3년"

    def test_consortium_required(self):
        results = _by_field(run_tier1("산학연 컨소시엄 필수"))
        assert results["requiresResearchInstitute"].value is True


class TestMissingFields:

    def test_all_missing_for_empty(self):
        missing = get_missing_fields_by_group([])
        assert sum(len(v) for v in missing.values()) == 20
        assert missing[FieldGroup.A][0] is F.APPLICATION_START
        assert missing[FieldGroup.D] == [F.KEYWORDS, F.PRIMARY_TARGET_INDUSTRY, F.SEMANTIC_SUB_DOMAIN]

    def test_sample_missing(self, sample_text):
        missing = get_missing_fields_by_group(run_tier1(sample_text))
        assert missing[FieldGroup.A] == []
        assert missing[FieldGroup.B] == []
        assert F.LEAD_ROLE_ALLOWED in missing[FieldGroup.C]
        assert F.TARGET_TYPE not in missing[FieldGroup.C]
        assert not group_has_missing_fields(missing, FieldGroup.A)
        assert group_has_missing_fields(missing, FieldGroup.D)


class TestCuratedPatterns:

    def _write_config(self, tmp_path, body):
        path = tmp_path / "rules.yaml"
        path.write_text(body, encoding="utf-8")
        return str(path)

    def test_curated_pattern_appended(self, tmp_path):
        config_path = self._write_config(tmp_path, """
patterns:
  numAwards:
    - pattern: '선정\\s*기업\\s*수\\s*[:：]\\s*(\\d+)'
      description: "선정 기업 수 (큐레이션)"
  unknownField:
    - '(.*)'
  keywords:
    - '(('
""")
        extractor = RuleExtractor(config_path)
        results = _by_field(extractor.extract_fields("선정 기업 수: 7"))

        assert results["numAwards"].value == 7
        assert results["numAwards"].source == "선정 기업 수 (큐레이션)"
        assert results["numAwards"].confidence is Confidence.MEDIUM
        assert len(extractor.rules) == len(RuleExtractor().rules) + 1

    def test_builtin_rule_keeps_priority(self, tmp_path):
        config_path = self._write_config(tmp_path, """
patterns:
  deadline:
    - pattern: '(\\d{4}-\\d{2}-\\d{2})'
      confidence: HIGH
""")
        extractor = RuleExtractor(config_path)
        results = _by_field(extractor.extract_fields("참고일 2025-01-01\n마감일: 2025-03-15"))
        assert results["deadline"].value == date(2025, 3, 15)

    def test_run_tier1_uses_given_extractor(self, tmp_path):
        config_path = self._write_config(tmp_path, """
patterns:
  numAwards:
    - '선정\\s*기업\\s*수\\s*[:：]\\s*(\\d+)'
""")
        text = "선정 기업 수: 7"
        assert "numAwards" not in _by_field(run_tier1(text))
        assert _by_field(run_tier1(text, RuleExtractor(config_path)))["numAwards"].value == 7
        assert len(DEFAULT_EXTRACTOR.rules) == len(RuleExtractor().rules)

    def test_missing_config_file(self, tmp_path):
        extractor = RuleExtractor(str(tmp_path / "nope.yaml"))
        assert len(extractor.rules) == len(RuleExtractor().rules)

    def test_extraction_stats(self, sample_text):
        extractor = RuleExtractor()
        stats = extractor.get_extraction_stats(extractor.extract_fields(sample_text))
        assert stats['total_fields'] == 12
        assert stats['declared_fields'] == 20
        assert stats['fields_by_group']['A'] == 6
