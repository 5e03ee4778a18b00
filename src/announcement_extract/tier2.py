"""
Tier 2 그룹 단위 LLM 추출

Tier 1이 놓친 필드만 그룹(A~D)별로 묶어 저가 모델에 한 번씩 질의한다.
그룹 호출 전마다 작업 누적 비용을 상한과 비교하며, 상한에 도달하면
남은 그룹은 모두 건너뛴다.
"""
import json
from typing import Any, Dict, List, Optional, Union
import logging

from .config import ThreeTierConfig
from .llm_client import LLMClient, extract_json_object
from .registry import AnnouncementField, coerce_value, F
from .schema import Confidence, CostRecord, FieldGroup, ParseFailure, Tier2Result
from .sinks import CostSink, LoggingCostSink

logger = logging.getLogger(__name__)

ENDPOINT = "tier2-extraction"

SYSTEM_PROMPT = (
    "You are a Korean R&D government announcement data extraction specialist. "
    "Extract ONLY the requested fields from the provided text. Respond with valid JSON only."
)

FIELD_DESCRIPTIONS: Dict[AnnouncementField, str] = {
    # A
    F.APPLICATION_START: '접수시작일 (format: YYYY-MM-DD)',
    F.DEADLINE: '접수마감일 (format: YYYY-MM-DD)',
    F.DEADLINE_TIME_RULE: '마감시간 규칙 (예: "18:00까지 시스템 제출 완료")',
    F.PUBLISHED_AT: '공고일 (format: YYYY-MM-DD)',
    F.SUBMISSION_SYSTEM: '접수시스템명 (예: "IRIS", "범부처통합혁신사업관리시스템")',
    F.CONTACT_INFO: '문의처 (기관명 | 전화번호 | 이메일)',
    # B
    F.BUDGET_AMOUNT: '총 사업비/지원규모 (숫자, 원 단위). 예: "52억원" → 5200000000',
    F.BUDGET_PER_PROJECT: '과제당 지원금 (숫자, 원 단위). 예: "300백만원" → 300000000',
    F.FUNDING_RATE: '정부/민간 분담비율 (예: "정부 75%, 민간 25%")',
    F.FUNDING_PERIOD: '연구/사업 기간 (예: "2년", "36개월")',
    F.NUM_AWARDS: '선정 과제/기업 수 (숫자)',
    # C
    F.TARGET_TYPE: '지원대상 조직유형 배열 ["COMPANY", "RESEARCH_INSTITUTE", "UNIVERSITY", "PUBLIC_INSTITUTION"]',
    F.LEAD_ROLE_ALLOWED: '주관기관 자격 (배열, 예: ["중소기업", "중견기업"])',
    F.CO_ROLE_ALLOWED: '참여/공동연구기관 자격 (배열, 예: ["대학", "연구기관"])',
    F.REQUIRES_RESEARCH_INSTITUTE: '컨소시엄/산학연 필수 여부 (true/false)',
    F.REQUIRED_CERTIFICATIONS: '필요 인증/자격 (배열, 예: ["벤처기업", "INNO-BIZ"])',
    F.EXCLUSION_RULES: '신청제외/참여제한 사유 (배열)',
    # D
    F.KEYWORDS: '기술 키워드 (배열, 최대 10개, 예: ["인공지능", "양자컴퓨팅", "바이오"])',
    F.PRIMARY_TARGET_INDUSTRY: '주요 대상 산업 (1개, 예: "바이오의약품", "반도체", "자율주행")',
    F.SEMANTIC_SUB_DOMAIN: '세부 기술분류 (JSON, 예: {"targetOrganism": "HUMAN", "applicationArea": "DIAGNOSTICS"})',
}

GROUP_INSTRUCTIONS: Dict[FieldGroup, Dict[str, Any]] = {
    FieldGroup.A: {
        'title': '다음 한국 정부 R&D 공고문에서 아래 필드를 추출하세요.',
        'rules': [
            '값을 찾을 수 없으면 null로 표시',
            '날짜는 YYYY-MM-DD 형식으로',
            'JSON 형식으로만 응답 (설명 불필요)',
        ],
    },
    FieldGroup.B: {
        'title': '다음 한국 정부 R&D 공고문에서 예산 및 기간 관련 필드를 추출하세요.',
        'rules': [
            '금액은 원(KRW) 단위 숫자로 변환 (억원 = ×100,000,000, 백만원 = ×1,000,000)',
            'R&D 지원금 우선 (투자 요건 금액과 구별)',
            '과제당 금액과 총 사업비 구별',
            '값을 찾을 수 없으면 null',
            'JSON 형식으로만 응답',
        ],
    },
    FieldGroup.C: {
        'title': '다음 한국 정부 R&D 공고문에서 지원자격 및 요건 필드를 추출하세요.',
        'rules': [
            '조직유형은 정해진 enum 값만 사용: COMPANY, RESEARCH_INSTITUTE, UNIVERSITY, PUBLIC_INSTITUTION',
            '배열 필드는 관련 항목을 쉼표로 구분',
            '명시되지 않은 정보는 null',
            'JSON 형식으로만 응답',
        ],
    },
    FieldGroup.D: {
        'title': '다음 한국 정부 R&D 공고문에서 기술 도메인 및 키워드를 추출하세요.',
        'rules': [
            '키워드는 구체적인 기술 용어 (일반적인 "연구", "개발" 제외)',
            '대상 산업은 가능한 구체적으로 (예: "바이오" 대신 "바이오의약품")',
            '값을 찾을 수 없으면 null',
            'JSON 형식으로만 응답',
        ],
    },
}


def build_group_prompt(group: FieldGroup, missing_fields: List[AnnouncementField]) -> str:
    """그룹별 프롬프트 (아직 비어 있는 필드만 나열)"""
    instructions = GROUP_INSTRUCTIONS[group]
    field_lines = '\n'.join(f"- {f.value}: {FIELD_DESCRIPTIONS[f]}" for f in missing_fields)
    rule_lines = '\n'.join(f"- {r}" for r in instructions['rules'])
    response_lines = ',\n'.join(f'  "{f.value}": <값 또는 null>' for f in missing_fields)

    return f"""{instructions['title']}

추출할 필드:
{field_lines}

규칙:
{rule_lines}

응답 형식 (JSON):
{{
{response_lines}
}}"""


def parse_group_response(content: str) -> Union[Dict[str, Any], ParseFailure]:
    """응답에서 JSON 객체를 꺼내 dict로 반환 (실패 시 ParseFailure)"""
    preview = content[:200]
    json_str = extract_json_object(content)
    if json_str is None:
        return ParseFailure(reason="JSON 객체 없음", preview=preview)

    try:
        parsed = json.loads(json_str)
    except json.JSONDecodeError as e:
        return ParseFailure(reason=f"JSON 파싱 실패: {e}", preview=preview)

    if not isinstance(parsed, dict):
        return ParseFailure(reason="JSON 객체가 아님", preview=preview)
    return parsed


class Tier2Extractor:
    """Tier 2 추출기 (작업 1개 전용)"""

    def __init__(self, job_id: str, llm: LLMClient, config: ThreeTierConfig,
                 cost_sink: Optional[CostSink] = None):
        self.job_id = job_id
        self.llm = llm
        self.config = config
        self.model_config = config.tier2
        self.cost_sink = cost_sink or LoggingCostSink()
        self.total_cost_krw = 0.0
        self.total_tokens = 0

    def extract_fields(self, text: str, missing_by_group: Dict[FieldGroup, List[AnnouncementField]],
                       groups: List[FieldGroup], job=None) -> List[Tier2Result]:
        """
        그룹 순서대로 추출

        Args:
            text: 공고문 텍스트 (앞부분만 사용)
            missing_by_group: 그룹별 미추출 필드
            groups: 처리할 그룹 순서
            job: 누적 비용을 공유할 JobContext (없으면 이 추출기 내부 합계 사용)
        """
        results: List[Tier2Result] = []
        truncated = text[:self.model_config.max_input_chars]
        ceiling = self.config.max_tier2_cost_per_job

        for group in groups:
            missing_fields = missing_by_group.get(group) or []
            if not missing_fields:
                continue

            spent = job.cost_krw if job is not None else self.total_cost_krw
            if spent >= ceiling:
                logger.info(f"💰 [{self.job_id}] Tier 2 비용 상한 도달 ({spent:.1f} / {ceiling}원), 그룹 {group.value}부터 건너뜀")
                break

            try:
                group_results = self.extract_group(group, missing_fields, truncated, job=job)
            except Exception as e:
                logger.error(f"❌ [{self.job_id}] 그룹 {group.value} 추출 실패: {e}")
                continue
            results.extend(group_results)

        return results

    def extract_group(self, group: FieldGroup, missing_fields: List[AnnouncementField],
                      text: str, job=None) -> List[Tier2Result]:
        """그룹 1개에 대해 모델 1회 호출"""
        prompt = f"{build_group_prompt(group, missing_fields)}\n\n---\n공고문 텍스트:\n{text}"
        logger.info(f"🔄 [{self.job_id}] Tier 2 그룹 {group.value} 호출 ({len(missing_fields)}개 필드)")

        try:
            completion = self.llm.complete(SYSTEM_PROMPT, prompt, self.model_config.max_output_tokens)
        except Exception:
            self._report_cost(0, 0, 0, success=False)
            raise

        cost = self.model_config.cost_krw(completion.input_tokens, completion.output_tokens)
        self.total_cost_krw += cost
        self.total_tokens += completion.total_tokens
        if job is not None:
            job.add_cost(cost)
        self._report_cost(completion.input_tokens, completion.output_tokens, completion.duration_ms, cost=cost)

        logger.info(
            f"✅ [{self.job_id}] 그룹 {group.value}: {completion.total_tokens} 토큰, "
            f"{cost:.2f}원, {completion.duration_ms}ms"
        )

        parsed = parse_group_response(completion.text)
        if isinstance(parsed, ParseFailure):
            logger.warning(f"⚠️ [{self.job_id}] 그룹 {group.value} 응답 파싱 실패: {parsed.reason} / {parsed.preview}")
            return []

        tokens_per_field = round(completion.total_tokens / len(missing_fields))
        results: List[Tier2Result] = []

        for field in missing_fields:
            value = coerce_value(field, parsed.get(field.value))
            results.append(Tier2Result(
                field=field.value,
                group=group,
                value=value,
                confidence=Confidence.MEDIUM if value is not None else Confidence.LOW,
                source=f"tier2:{self.llm.model}",
                tokens_used=tokens_per_field,
            ))

        return results

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
