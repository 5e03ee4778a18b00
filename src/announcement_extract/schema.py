"""
Pydantic 입출력 모델 정의
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FieldGroup(str, Enum):
    """필드 의미 그룹 (Tier 2 배치 단위)"""
    A = "A"  # 일정 및 운영
    B = "B"  # 예산 및 기간
    C = "C"  # 지원 자격
    D = "D"  # 기술 도메인 및 키워드


class Confidence(str, Enum):
    """추출 신뢰도 태그 (확률이 아님)"""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ExtractionResult(BaseModel):
    """단일 필드 추출 결과"""
    field: str = Field(..., description="필드명")
    group: FieldGroup = Field(..., description="필드 그룹")
    value: Any = Field(None, description="추출된 값")
    confidence: Confidence = Field(..., description="신뢰도")
    tier: int = Field(..., description="추출 단계: 1/2/3", ge=1, le=3)
    source: str = Field(..., description="출처: 패턴 설명 또는 모델 단계")


class Tier2Result(ExtractionResult):
    """Tier 2 결과 (필드별 토큰은 그룹 호출 토큰의 균등 분할 근사치)"""
    tier: int = Field(2, description="추출 단계", ge=2, le=2)
    tokens_used: int = Field(0, description="필드당 근사 토큰 수")


class FieldResult(BaseModel):
    """병합된 최종 필드 값"""
    value: Any = Field(..., description="값")
    confidence: Confidence = Field(..., description="신뢰도")
    tier: int = Field(..., description="값을 제공한 단계", ge=1, le=3)
    source: str = Field(..., description="출처")


class PatternSuggestion(BaseModel):
    """Tier 3가 제안하는 Tier 1 패턴 개선안"""
    model_config = ConfigDict(populate_by_name=True)

    field: str = Field(..., description="필드명")
    extracted_value: Any = Field(None, alias="extractedValue", description="Tier 3가 추출한 값")
    context_snippet: str = Field("", alias="contextSnippet", description="값 주변 원문")
    suggested_pattern: str = Field("", alias="suggestedPattern", description="제안 정규식/키워드")
    failure_reason: str = Field("", alias="failureReason", description="기존 패턴 실패 이유")

    @field_validator("context_snippet", "suggested_pattern", "failure_reason", mode="before")
    @classmethod
    def _null_to_empty(cls, v):
        return "" if v is None else v


class Tier3Result(BaseModel):
    """Tier 3 전체 문서 분석 결과"""
    fields: Dict[str, Any] = Field(default_factory=dict, description="추출된 전체 필드")
    tokens_used: int = Field(0, description="입력+출력 토큰 수")
    cost_krw: float = Field(0.0, description="추정 비용 (원)")
    reasoning: str = Field("", description="문서 구조 분석 설명")
    pattern_suggestions: List[PatternSuggestion] = Field(default_factory=list, description="패턴 제안")


class ParseFailure(BaseModel):
    """모델 응답 파싱 실패"""
    reason: str = Field(..., description="실패 사유")
    preview: str = Field("", description="응답 앞부분")


class LLMCompletion(BaseModel):
    """LLM 호출 결과"""
    text: str = Field("", description="응답 텍스트")
    input_tokens: int = Field(0, description="입력 토큰")
    output_tokens: int = Field(0, description="출력 토큰")
    duration_ms: int = Field(0, description="호출 시간 (ms)")

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class CostRecord(BaseModel):
    """비용 로그 레코드"""
    job_id: str
    endpoint: str
    provider: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost_krw: float = 0.0
    duration_ms: int = 0
    success: bool = True


class FeedbackRecord(BaseModel):
    """Tier 3 피드백 레코드 (패턴 제안 1건당 1개)"""
    job_id: str = Field(..., description="작업 ID")
    field: str = Field(..., description="필드명")
    tier1_value: Optional[str] = Field(None, description="Tier 1 값 (JSON)")
    tier2_value: Optional[str] = Field(None, description="Tier 2 값 (JSON)")
    tier3_value: Optional[str] = Field(None, description="Tier 3 값 (JSON)")
    original_context: str = Field("", description="원문 주변 텍스트")
    reasoning: str = Field("", description="실패 이유")
    pattern_suggestion: str = Field("", description="제안 패턴")
    incorporated: bool = Field(False, description="Tier 1 반영 여부")
    created_at: datetime = Field(default_factory=datetime.now, description="생성 시각")


class DocumentSources(BaseModel):
    """호출자가 넘기는 공고 텍스트 소스 (우선순위 순)"""
    announcement_texts: List[str] = Field(default_factory=list, description="공고문 첨부파일 텍스트")
    raw_html: str = Field("", description="상세 페이지 원본 HTML")
    description: str = Field("", description="공고 설명")
    markdown: bool = Field(False, description="첨부파일 텍스트가 Markdown 변환본인지 여부")


class ThreeTierExtractionResult(BaseModel):
    """3단계 추출 최종 결과"""
    job_id: str = Field(..., description="작업 ID")
    highest_tier_used: int = Field(1, description="사용된 최고 단계", ge=1, le=3)
    fields: Dict[str, FieldResult] = Field(default_factory=dict, description="필드별 결과")
    tier2_tokens_used: int = Field(0, description="Tier 2 토큰")
    tier3_tokens_used: int = Field(0, description="Tier 3 토큰")
    estimated_cost_krw: float = Field(0.0, description="추정 비용 (원)")
    failed_fields: List[str] = Field(default_factory=list, description="모든 단계에서 실패한 필드")
    coverage_percent: int = Field(0, description="커버리지 (%)")
    escalation_reasons: List[str] = Field(default_factory=list, description="Tier 3 승격 사유")
    tier1_results: List[ExtractionResult] = Field(default_factory=list)
    tier2_results: List[Tier2Result] = Field(default_factory=list)
    tier3_result: Optional[Tier3Result] = None
