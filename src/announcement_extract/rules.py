"""
Tier 1 규칙 기반 추출 엔진
"""
import re
import yaml
from typing import List, Dict, Any, Optional
import logging

from .registry import (
    ALL_FIELDS,
    FIELD_GROUP_MAP,
    AnnouncementField,
    PatternRule,
    PatternRuleList,
    build_default_rules,
    kind_post_process,
    to_field,
)
from .schema import Confidence, ExtractionResult, FieldGroup

logger = logging.getLogger(__name__)


class RuleExtractor:
    """
    규칙 추출기

    기본 규칙 뒤에 YAML 설정의 `patterns:` 항목(큐레이션된 Tier 3 제안 등)을
    낮은 우선순위로 덧붙인다.
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config = self._load_config(config_path) if config_path else {}
        self.rules = build_default_rules()
        self.rules.extend(self._compile_patterns())

    def _load_config(self, config_path: str) -> Dict[str, Any]:
        """설정 파일 로드"""
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning(f"설정 파일 없음, 기본 규칙만 사용: {config_path}")
            return {}
        except yaml.YAMLError as e:
            logger.error(f"설정 파일 파싱 실패: {e}")
            return {}

    def _compile_patterns(self) -> List[PatternRule]:
        """큐레이션 패턴 컴파일"""
        rules: List[PatternRule] = []

        for field_name, pattern_list in (self.config.get('patterns') or {}).items():
            field = to_field(field_name)
            if field is None:
                logger.warning(f"알 수 없는 필드의 패턴 무시: {field_name}")
                continue

            for pattern_info in pattern_list or []:
                if isinstance(pattern_info, dict):
                    pattern_str = pattern_info.get('pattern', '')
                    description = pattern_info.get('description', '') or f"curated:{field_name}"
                    confidence = pattern_info.get('confidence', 'MEDIUM')
                else:
                    pattern_str = pattern_info
                    description = f"curated:{field_name}"
                    confidence = 'MEDIUM'

                if str(confidence).upper() not in (Confidence.HIGH.value, Confidence.MEDIUM.value):
                    logger.warning(f"지원하지 않는 신뢰도 {confidence}, MEDIUM으로 처리: {pattern_str}")
                    confidence = 'MEDIUM'

                try:
                    compiled_pattern = re.compile(pattern_str, re.IGNORECASE | re.MULTILINE)
                except re.error as e:
                    logger.warning(f"정규식 컴파일 실패: {pattern_str}, 오류: {e}")
                    continue

                rules.append(PatternRule(
                    field=field,
                    patterns=[compiled_pattern],
                    post_process=kind_post_process(field),
                    confidence=Confidence(str(confidence).upper()),
                    description=description,
                ))

        if rules:
            logger.info(f"큐레이션 패턴 {len(rules)}개 로드")
        return rules

    def extract_fields(self, text: str) -> List[ExtractionResult]:
        """필드별 첫 성공 규칙 결과 (규칙 등록 순서)"""
        results: List[ExtractionResult] = []
        if not text:
            return results

        for field in self.rules.fields():
            hit = self.rules.first_match(field, text)
            if hit is None:
                continue
            rule, value = hit
            results.append(ExtractionResult(
                field=field.value,
                group=rule.group,
                value=value,
                confidence=rule.confidence,
                tier=1,
                source=rule.description,
            ))

        return results

    def get_extraction_stats(self, results: List[ExtractionResult]) -> Dict[str, Any]:
        """추출 통계"""
        stats = {
            'total_fields': len(results),
            'declared_fields': len(ALL_FIELDS),
            'fields_by_group': {g.value: 0 for g in FieldGroup},
            'fields_by_confidence': {Confidence.HIGH.value: 0, Confidence.MEDIUM.value: 0},
        }

        for result in results:
            stats['fields_by_group'][result.group.value] += 1
            stats['fields_by_confidence'][result.confidence.value] += 1

        return stats


DEFAULT_EXTRACTOR = RuleExtractor()


def run_tier1(text: str, extractor: Optional[RuleExtractor] = None) -> List[ExtractionResult]:
    """
    모든 Tier 1 패턴을 텍스트에 적용

    Args:
        text: 공고문 전체 텍스트 (비어 있을 수 있음)
        extractor: 큐레이션 패턴이 포함된 추출기 (기본값: 기본 규칙만)

    Returns:
        매칭된 필드의 ExtractionResult 목록
    """
    return (extractor or DEFAULT_EXTRACTOR).extract_fields(text)


def get_missing_fields_by_group(results: List[ExtractionResult]) -> Dict[FieldGroup, List[AnnouncementField]]:
    """결과에 없는 필드를 그룹별로 반환 (선언 순서)"""
    matched = {r.field for r in results if r.value is not None}
    missing: Dict[FieldGroup, List[AnnouncementField]] = {g: [] for g in FieldGroup}

    for field in ALL_FIELDS:
        if field.value not in matched:
            missing[FIELD_GROUP_MAP[field]].append(field)

    return missing


def group_has_missing_fields(missing: Dict[FieldGroup, List[AnnouncementField]], group: FieldGroup) -> bool:
    return len(missing.get(group, [])) > 0
