"""
Tier 3 전체 문서 분석

Tier 1/2 결과가 부족한 공고에만 고성능 모델로 전체 필드를 다시 추출하고,
기존 정규식이 실패한 이유와 새 패턴 제안을 피드백 저장소에 남긴다.
제안은 자동 적용되지 않는다. 검토 후 설정 파일의 `patterns:` 항목으로 반영한다.
"""
import json
from typing import Any, Dict, List, Optional
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import ThreeTierConfig
from .llm_client import LLMClient, estimate_tokens, extract_json_object
from .registry import coerce_value, to_field
from .schema import (
    CostRecord,
    ExtractionResult,
    FeedbackRecord,
    PatternSuggestion,
    Tier2Result,
    Tier3Result,
)
from .sinks import CostSink, FeedbackStore, LoggingCostSink, NullFeedbackStore

logger = logging.getLogger(__name__)

ENDPOINT = "tier3-extraction"

SYSTEM_PROMPT = (
    "당신은 한국 정부 R&D 공고문 분석 전문가입니다. 주어진 공고문에서 구조화된 데이터를 "
    "정확하게 추출하고, 자동 추출 시스템 개선을 위한 패턴을 제안합니다. 반드시 JSON 형식으로 응답하세요."
)

COST_CEILING_REASON = "cost ceiling"

FIELD_SECTIONS = """### Section A: 일정 및 운영 정보
- applicationStart: 접수시작일 (YYYY-MM-DD)
- deadline: 접수마감일 (YYYY-MM-DD)
- deadlineTimeRule: 마감시간 규칙 (예: "18:00까지 시스템 제출 완료")
- publishedAt: 공고일 (YYYY-MM-DD)
- submissionSystem: 접수시스템 (예: "IRIS", "범부처통합혁신사업관리시스템")
- contactInfo: 문의처 (기관명, 전화번호, 이메일)

### Section B: 예산 및 기간
- budgetAmount: 총 사업비 (숫자, 원 단위)
- budgetPerProject: 과제당 지원금 (숫자, 원 단위)
- fundingRate: 정부/민간 분담비율 (예: "정부 75%, 민간 25%")
- fundingPeriod: 연구/사업 기간 (예: "2년", "36개월")
- numAwards: 선정 과제 수 (숫자)

### Section C: 지원 자격
- targetType: 대상 조직유형 (배열: "COMPANY", "RESEARCH_INSTITUTE", "UNIVERSITY", "PUBLIC_INSTITUTION")
- leadRoleAllowed: 주관기관 자격 (배열)
- coRoleAllowed: 참여/공동연구기관 자격 (배열)
- requiresResearchInstitute: 컨소시엄 필수 여부 (boolean)
- requiredCertifications: 필요 인증 (배열)
- exclusionRules: 참여제한 사유 (배열)

### Section D: 기술 도메인
- keywords: 기술 키워드 (배열, 최대 10개)
- primaryTargetIndustry: 주요 대상 산업 (1개)
- semanticSubDomain: 세부 기술분류 (JSON)"""

RESPONSE_FORMAT = """```json
{
  "fields": {
    "applicationStart": "<YYYY-MM-DD 또는 null>",
    "deadline": "<YYYY-MM-DD 또는 null>",
    "deadlineTimeRule": "<규칙 또는 null>",
    "publishedAt": "<YYYY-MM-DD 또는 null>",
    "submissionSystem": "<시스템명 또는 null>",
    "contactInfo": "<문의처 또는 null>",
    "budgetAmount": <숫자 또는 null>,
    "budgetPerProject": <숫자 또는 null>,
    "fundingRate": "<비율 또는 null>",
    "fundingPeriod": "<기간 또는 null>",
    "numAwards": <숫자 또는 null>,
    "targetType": ["<조직유형>"],
    "leadRoleAllowed": ["<기관유형>"],
    "coRoleAllowed": ["<기관유형>"],
    "requiresResearchInstitute": <boolean>,
    "requiredCertifications": ["<인증명>"],
    "exclusionRules": ["<제한사유>"],
    "keywords": ["<키워드>"],
    "primaryTargetIndustry": "<산업명>",
    "semanticSubDomain": {}
  },
  "reasoning": "<문서 구조 및 추출 과정 설명 (한국어, 2-3문장)>",
  "patternSuggestions": [
    {
      "field": "<필드명>",
      "extractedValue": "<추출한 값>",
      "contextSnippet": "<값이 나타난 원문 주변 텍스트 50자>",
      "suggestedPattern": "<제안 정규식 패턴>",
      "failureReason": "<기존 패턴이 실패한 이유>"
    }
  ]
}
```"""


class Tier3Payload(BaseModel):
    """모델 응답 JSON 구조"""
    model_config = ConfigDict(populate_by_name=True)

    fields: Dict[str, Any] = Field(default_factory=dict)
    reasoning: str = ""
    pattern_suggestions: List[PatternSuggestion] = Field(default_factory=list, alias="patternSuggestions")

    @field_validator("fields", mode="before")
    @classmethod
    def _fields_or_empty(cls, v):
        return {} if v is None else v

    @field_validator("reasoning", mode="before")
    @classmethod
    def _reasoning_or_empty(cls, v):
        return "" if v is None else v

    @field_validator("pattern_suggestions", mode="before")
    @classmethod
    def _valid_suggestions_only(cls, v):
        """형식이 틀린 제안은 하나씩 버리고 나머지는 유지"""
        if not isinstance(v, list):
            return []
        suggestions = []
        for item in v:
            try:
                suggestions.append(PatternSuggestion.model_validate(item))
            except ValidationError as e:
                logger.debug(f"형식이 틀린 패턴 제안 무시: {e.error_count()}개 오류")
        return suggestions


def _to_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, default=str)


def build_full_extraction_prompt(tier1_results: List[ExtractionResult],
                                 tier2_results: List[Tier2Result]) -> str:
    """이미 추출된 값과 실패 필드를 포함한 전체 추출 프롬프트"""
    extracted_lines = [
        f"{r.field}: {_to_json(r.value)} (Tier1, {r.confidence.value})" for r in tier1_results
    ] + [
        f"{r.field}: {_to_json(r.value)} (Tier2, {r.confidence.value})"
        for r in tier2_results if r.value is not None
    ]
    failed_fields = [r.field for r in tier2_results if r.value is None]

    already_extracted = '\n'.join(extracted_lines) or '(없음 - 모든 필드 추출 실패)'
    failed = ', '.join(failed_fields) or '(모든 필드 재검증 필요)'

    return f"""당신은 한국 정부 R&D 공고문 분석 전문가입니다.

## 배경
이 공고문에서 자동 추출 시스템(Tier 1: 정규식, Tier 2: 저가 모델)이 일부 필드 추출에 실패했습니다.
당신의 역할은:
1. 모든 필드를 정확하게 추출
2. 기존 시스템이 실패한 이유를 분석
3. 향후 자동 추출을 개선할 패턴을 제안

## 이미 추출된 필드 (참고용)
{already_extracted}

## 추출 실패 필드 (중점 분석)
{failed}

## 추출 요청 필드 (Section A ~ D)

{FIELD_SECTIONS}

## 응답 형식 (반드시 이 JSON 구조로 응답)
{RESPONSE_FORMAT}"""


def parse_tier3_response(content: str) -> Tier3Payload:
    """
    응답을 Tier3Payload로 검증

    Raises:
        ValueError: JSON 객체가 없거나 구조가 맞지 않을 때
    """
    json_str = extract_json_object(content)
    if json_str is None:
        raise ValueError("JSON 객체 없음")
    try:
        return Tier3Payload.model_validate_json(json_str)
    except ValidationError as e:
        raise ValueError(f"응답 구조 불일치: {e.error_count()}개 오류") from e


def normalize_fields(raw_fields: Dict[str, Any]) -> Dict[str, Any]:
    """알려진 필드의 null 아닌 값만 종류별로 정규화"""
    fields: Dict[str, Any] = {}
    for name, raw in raw_fields.items():
        field = to_field(name)
        if field is None:
            logger.debug(f"알 수 없는 필드 무시: {name}")
            continue
        value = coerce_value(field, raw)
        if value is not None:
            fields[field.value] = value
    return fields


class Tier3Extractor:
    """Tier 3 추출기 (작업 1개 전용)"""

    def __init__(self, job_id: str, llm: LLMClient, config: ThreeTierConfig,
                 cost_sink: Optional[CostSink] = None,
                 feedback_store: Optional[FeedbackStore] = None):
        self.job_id = job_id
        self.llm = llm
        self.config = config
        self.model_config = config.tier3
        self.cost_sink = cost_sink or LoggingCostSink()
        self.feedback_store = feedback_store or NullFeedbackStore()

    def projected_cost(self, prompt: str) -> float:
        """호출 전 예상 최대 비용 (입력 문자/4 + 최대 출력 토큰)"""
        input_tokens = estimate_tokens(SYSTEM_PROMPT) + estimate_tokens(prompt)
        return self.model_config.cost_krw(input_tokens, self.model_config.max_output_tokens)

    def extract_all(self, text: str, tier1_results: List[ExtractionResult],
                    tier2_results: List[Tier2Result], job=None) -> Tier3Result:
        """전체 문서 추출"""
        logger.info(f"🔍 [{self.job_id}] Tier 3 전체 문서 분석 시작")

        truncated = text[:self.model_config.max_input_chars]
        prompt = f"{build_full_extraction_prompt(tier1_results, tier2_results)}\n\n---\n공고문 텍스트:\n{truncated}"

        projected = self.projected_cost(prompt)
        ceiling = self.config.max_tier3_cost_per_job
        if projected > ceiling:
            logger.warning(f"💰 [{self.job_id}] Tier 3 예상 비용 {projected:.1f}원 > 상한 {ceiling}원, 호출 생략")
            return Tier3Result(reasoning=COST_CEILING_REASON)

        try:
            completion = self.llm.complete(SYSTEM_PROMPT, prompt, self.model_config.max_output_tokens)
        except Exception:
            self._report_cost(0, 0, 0, success=False)
            raise

        cost = self.model_config.cost_krw(completion.input_tokens, completion.output_tokens)
        if job is not None:
            job.add_cost(cost)
        self._report_cost(completion.input_tokens, completion.output_tokens, completion.duration_ms, cost=cost)

        logger.info(
            f"✅ [{self.job_id}] Tier 3 완료: {completion.total_tokens} 토큰, "
            f"{cost:.2f}원, {completion.duration_ms}ms"
        )

        try:
            payload = parse_tier3_response(completion.text)
        except ValueError as e:
            logger.warning(f"⚠️ [{self.job_id}] Tier 3 응답 파싱 실패: {e} / {completion.text[:300]}")
            return Tier3Result(
                tokens_used=completion.total_tokens,
                cost_krw=cost,
                reasoning=f"응답 파싱 실패: {e}",
            )

        result = Tier3Result(
            fields=normalize_fields(payload.fields),
            tokens_used=completion.total_tokens,
            cost_krw=cost,
            reasoning=payload.reasoning,
            pattern_suggestions=payload.pattern_suggestions,
        )

        self._store_feedback(result, tier1_results, tier2_results)
        return result

    def _store_feedback(self, result: Tier3Result, tier1_results: List[ExtractionResult],
                        tier2_results: List[Tier2Result]):
        """패턴 제안을 피드백 저장소에 기록 (실패해도 추출 결과에는 영향 없음)"""
        if not result.pattern_suggestions:
            return

        logger.info(f"💡 [{self.job_id}] 패턴 제안 {len(result.pattern_suggestions)}개")
        tier1_by_field = {r.field: r.value for r in tier1_results}
        tier2_by_field = {r.field: r.value for r in tier2_results}

        stored = 0
        for suggestion in result.pattern_suggestions:
            logger.info(f"  → {suggestion.field}: {suggestion.suggested_pattern!r} (사유: {suggestion.failure_reason})")
            record = FeedbackRecord(
                job_id=self.job_id,
                field=suggestion.field,
                tier1_value=_to_json(tier1_by_field.get(suggestion.field)),
                tier2_value=_to_json(tier2_by_field.get(suggestion.field)),
                tier3_value=_to_json(suggestion.extracted_value),
                original_context=suggestion.context_snippet,
                reasoning=suggestion.failure_reason,
                pattern_suggestion=suggestion.suggested_pattern,
            )
            try:
                self.feedback_store.append(record)
                stored += 1
            except Exception as e:
                logger.warning(f"⚠️ [{self.job_id}] 피드백 저장 생략: {e}")
                break

        if stored:
            logger.info(f"[{self.job_id}] 피드백 {stored}건 저장")

    def _report_cost(self, input_tokens: int, output_tokens: int, duration_ms: int,
                     cost: float = 0.0, success: bool = True):
        record = CostRecord(
            job_id=self.job_id,
            endpoint=ENDPOINT,
            provider=self.llm.provider,
            model=self.llm.model or "",
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            cost_krw=cost,
            duration_ms=duration_ms,
            success=success,
        )
        try:
            self.cost_sink.record(record)
        except Exception as e:
            logger.warning(f"비용 기록 실패: {e}")
