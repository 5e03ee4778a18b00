"""
3단계 추출 오케스트레이터

    Tier 1 (0원):   정규식 규칙, 항상 실행
    Tier 2 (저가):  Tier 1이 놓친 필드를 그룹별로 저가 모델에 질의
    Tier 3 (고가):  결과가 부족하거나 문서가 이상할 때만 전체 문서 분석

작업마다 새 JobContext를 만들고 끝나면 버리므로, 추출기 인스턴스 하나로
서로 다른 공고를 동시에 처리해도 비용 카운터가 섞이지 않는다.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional
import logging

from .config import ThreeTierConfig
from .llm_client import LLMClient
from .merge import FieldMerger
from .preprocess import MarkdownPreprocessor, compose_announcement_text
from .registry import ALL_FIELDS, AnnouncementField
from .rules import RuleExtractor, get_missing_fields_by_group, group_has_missing_fields
from .schema import (
    DocumentSources,
    ExtractionResult,
    FieldGroup,
    ThreeTierExtractionResult,
    Tier2Result,
)
from .sinks import CostSink, FeedbackStore, LoggingCostSink, NullFeedbackStore
from .tier2 import Tier2Extractor
from .tier3 import Tier3Extractor

logger = logging.getLogger(__name__)


@dataclass
class JobContext:
    """공고 1건 처리 중에만 존재하는 상태"""
    job_id: str
    text: str
    config: ThreeTierConfig
    cost_krw: float = 0.0

    def add_cost(self, cost_krw: float):
        self.cost_krw += cost_krw


def build_llm(config: ThreeTierConfig, tier: int, debug_mode: bool = False) -> LLMClient:
    """설정의 단계별 모델 정보로 LLMClient 생성"""
    model_config = config.tier2 if tier == 2 else config.tier3
    return LLMClient(
        provider=model_config.provider,
        model=model_config.model,
        base_url=model_config.base_url,
        debug_mode=debug_mode,
    )


class ThreeTierExtractor:
    """3단계 추출기"""

    def __init__(self, config: Optional[ThreeTierConfig] = None,
                 tier2_llm: Optional[LLMClient] = None,
                 tier3_llm: Optional[LLMClient] = None,
                 cost_sink: Optional[CostSink] = None,
                 feedback_store: Optional[FeedbackStore] = None,
                 rule_extractor: Optional[RuleExtractor] = None):
        self.config = config or ThreeTierConfig.from_env()
        self.tier2_llm = tier2_llm or build_llm(self.config, 2)
        self.tier3_llm = tier3_llm or build_llm(self.config, 3)
        self.cost_sink = cost_sink or LoggingCostSink()
        self.feedback_store = feedback_store or NullFeedbackStore()
        self.rule_extractor = rule_extractor or RuleExtractor()
        self.preprocessor = MarkdownPreprocessor()

    def extract(self, job_id: str, sources: DocumentSources) -> ThreeTierExtractionResult:
        """공고 1건 추출 (예외를 던지지 않고 항상 결과를 반환)"""
        text = compose_announcement_text(sources, self.preprocessor)
        job = JobContext(job_id=job_id, text=text, config=self.config)
        result = ThreeTierExtractionResult(job_id=job_id)
        merger = FieldMerger()

        # Tier 1
        logger.info(f"📋 [{job_id}] Tier 1 추출 시작 ({len(text)}자)")
        tier1_results = self.rule_extractor.extract_fields(text)
        result.tier1_results = tier1_results
        merger.merge_tier1(tier1_results)
        logger.info(f"📋 [{job_id}] Tier 1: {len(merger)}개 필드")

        # Tier 2
        missing_by_group = self._missing_by_group(tier1_results, merger)
        groups = [g for g in FieldGroup if group_has_missing_fields(missing_by_group, g)]

        if self.config.enable_tier2 and groups:
            logger.info(f"🤖 [{job_id}] Tier 2 대상 그룹: {', '.join(g.value for g in groups)}")
            result.highest_tier_used = 2
            tier2_cost_before = job.cost_krw
            extractor = Tier2Extractor(job_id, self.tier2_llm, self.config, self.cost_sink)
            try:
                tier2_results = extractor.extract_fields(text, missing_by_group, groups, job=job)
                result.tier2_results = tier2_results
                added = merger.merge_tier2(tier2_results)
                logger.info(f"🤖 [{job_id}] Tier 2: {added}개 필드 추가, {extractor.total_tokens} 토큰")
            except Exception as e:
                logger.error(f"❌ [{job_id}] Tier 2 실패: {e}")
            # 파싱 실패한 그룹의 토큰도 포함
            result.tier2_tokens_used = extractor.total_tokens
            result.estimated_cost_krw += job.cost_krw - tier2_cost_before

        # Tier 3
        reasons = self.should_escalate(job, tier1_results, result.tier2_results, len(merger))
        result.escalation_reasons = reasons

        if (self.config.enable_tier3 and reasons) or self.config.force_escalate:
            forced = " [강제]" if self.config.force_escalate else ""
            logger.info(f"🚀 [{job_id}] Tier 3 승격{forced}: {'; '.join(reasons) or '관리자 플래그'}")
            result.highest_tier_used = 3
            tier3_cost_before = job.cost_krw
            try:
                extractor = Tier3Extractor(job_id, self.tier3_llm, self.config,
                                           self.cost_sink, self.feedback_store)
                tier3_result = extractor.extract_all(text, tier1_results, result.tier2_results, job=job)
                result.tier3_result = tier3_result
                merger.merge_tier3(tier3_result.fields)
                result.tier3_tokens_used = tier3_result.tokens_used
                logger.info(f"🚀 [{job_id}] Tier 3: {len(tier3_result.fields)}개 필드, {tier3_result.tokens_used} 토큰")
            except Exception as e:
                logger.error(f"❌ [{job_id}] Tier 3 실패: {e}")
            result.estimated_cost_krw += job.cost_krw - tier3_cost_before

        # 최종 통계
        result.fields = dict(merger.fields)
        result.failed_fields = [f.value for f in ALL_FIELDS if f.value not in merger.fields]
        result.coverage_percent = round(len(merger) / len(ALL_FIELDS) * 100)

        logger.info(
            f"📊 [{job_id}] 완료: {len(merger)}/{len(ALL_FIELDS)} 필드 ({result.coverage_percent}%), "
            f"최고 단계 {result.highest_tier_used}, 비용 {result.estimated_cost_krw:.2f}원"
        )
        return result

    def _missing_by_group(self, tier1_results: List[ExtractionResult],
                          merger: FieldMerger) -> Dict[FieldGroup, List[AnnouncementField]]:
        missing = get_missing_fields_by_group(tier1_results)
        return {g: [f for f in fields if not merger.has(f.value)] for g, fields in missing.items()}

    def should_escalate(self, job: JobContext, tier1_results: List[ExtractionResult],
                        tier2_results: List[Tier2Result], extracted_count: int) -> List[str]:
        """
        Tier 3 승격 사유 목록 (비어 있으면 승격하지 않음)

        1. 미추출 비율이 임계값 초과
        2. 신규 양식 의심: Tier 1 추출이 적고 Tier 2도 대부분 실패
        3. 텍스트가 거의 없음 (스캔 문서 의심)
        """
        policy = self.config.escalation
        reasons: List[str] = []

        missing_ratio = 1 - extracted_count / len(ALL_FIELDS)
        if missing_ratio > policy.missing_ratio_threshold:
            reasons.append(f"미추출 필드 {round(missing_ratio * 100)}%")

        if len(tier1_results) < policy.min_tier1_fields and tier2_results:
            successes = sum(1 for r in tier2_results if r.value is not None)
            if successes / len(tier2_results) < policy.tier2_success_ratio:
                reasons.append(
                    f"신규 양식 의심 (Tier 1: {len(tier1_results)}개, Tier 2: {successes}/{len(tier2_results)} 성공)"
                )

        if len(job.text.strip()) < policy.min_text_length:
            reasons.append("텍스트 없음 (스캔 문서 의심)")

        for reason in reasons:
            logger.info(f"[{job.job_id}] Tier 3 조건 충족: {reason}")
        return reasons
