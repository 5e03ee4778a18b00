"""
단계별 결과 병합 모듈
"""
from typing import Any, Dict, List
import logging

from .schema import Confidence, ExtractionResult, FieldResult, Tier2Result

logger = logging.getLogger(__name__)

TIER3_SOURCE = "tier3-full-document"


class FieldMerger:
    """
    필드 병합기

    우선순위 규칙:
    - Tier 1 결과가 먼저 자리를 잡는다.
    - Tier 2는 빈 필드만 채우고 null 값은 병합하지 않는다.
    - Tier 3의 null 아닌 값은 기존 값을 항상 덮어쓰며 신뢰도는 HIGH.
    """

    def __init__(self):
        self.fields: Dict[str, FieldResult] = {}

    def merge_tier1(self, results: List[ExtractionResult]) -> int:
        added = 0
        for result in results:
            if result.value is None or result.field in self.fields:
                continue
            self.fields[result.field] = FieldResult(
                value=result.value,
                confidence=result.confidence,
                tier=1,
                source=result.source,
            )
            added += 1
        return added

    def merge_tier2(self, results: List[Tier2Result]) -> int:
        """빈 필드만 채움 (추가된 필드 수 반환)"""
        added = 0
        for result in results:
            if result.value is None or result.field in self.fields:
                continue
            self.fields[result.field] = FieldResult(
                value=result.value,
                confidence=result.confidence,
                tier=2,
                source=result.source,
            )
            added += 1
        return added

    def merge_tier3(self, fields: Dict[str, Any]) -> int:
        """null 아닌 값으로 덮어씀 (덮어쓴 기존 필드 수와 무관하게 반영된 필드 수 반환)"""
        applied = 0
        for name, value in fields.items():
            if value is None:
                continue
            previous = self.fields.get(name)
            if previous is not None and previous.value != value:
                logger.debug(f"Tier 3 덮어쓰기: {name} {previous.value!r} -> {value!r}")
            self.fields[name] = FieldResult(
                value=value,
                confidence=Confidence.HIGH,
                tier=3,
                source=TIER3_SOURCE,
            )
            applied += 1
        return applied

    def has(self, field: str) -> bool:
        return field in self.fields

    def __len__(self) -> int:
        return len(self.fields)
