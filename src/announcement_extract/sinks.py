"""
비용 기록 및 피드백 저장소
"""
import json
from pathlib import Path
from typing import List, Union
import logging

from .exceptions import FeedbackStoreUnavailable
from .schema import CostRecord, FeedbackRecord

logger = logging.getLogger(__name__)


class CostSink:
    """LLM 호출 1회당 CostRecord 1개를 받는 기록기"""

    def record(self, record: CostRecord) -> None:
        raise NotImplementedError


class LoggingCostSink(CostSink):
    """비용을 로그로만 남김"""

    def record(self, record: CostRecord) -> None:
        status = "✅" if record.success else "❌"
        logger.info(
            f"{status} 비용 [{record.job_id}] {record.endpoint} {record.provider}:{record.model} "
            f"토큰={record.total_tokens} 비용={record.cost_krw:.2f}원 {record.duration_ms}ms"
        )


class JsonlCostSink(LoggingCostSink):
    """비용 레코드를 JSON Lines 파일에 추가"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def record(self, record: CostRecord) -> None:
        super().record(record)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(json.dumps(record.model_dump(mode="json"), ensure_ascii=False) + "\n")


class FeedbackStore:
    """Tier 3 패턴 제안 저장소"""

    def append(self, record: FeedbackRecord) -> None:
        raise NotImplementedError


class NullFeedbackStore(FeedbackStore):
    """저장소 미설정 상태 (추가 시 예외)"""

    def append(self, record: FeedbackRecord) -> None:
        raise FeedbackStoreUnavailable("피드백 저장소가 설정되지 않음")


class JsonlFeedbackStore(FeedbackStore):
    """피드백 레코드를 JSON Lines 파일에 추가"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def append(self, record: FeedbackRecord) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'a', encoding='utf-8') as f:
                f.write(json.dumps(record.model_dump(mode="json"), ensure_ascii=False) + "\n")
        except OSError as e:
            raise FeedbackStoreUnavailable(f"피드백 저장 실패: {self.path}: {e}") from e

    def read(self) -> List[FeedbackRecord]:
        """저장된 레코드 전체 (손상된 줄은 건너뜀)"""
        records: List[FeedbackRecord] = []
        if not self.path.exists():
            return records

        with open(self.path, 'r', encoding='utf-8') as f:
            for line_no, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(FeedbackRecord.model_validate_json(line))
                except ValueError as e:
                    logger.warning(f"피드백 {line_no}행 파싱 실패: {e}")

        return records
