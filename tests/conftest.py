"""테스트 공용 픽스처

네트워크 없이 동작하도록 LLM은 스크립트된 가짜 클라이언트로 대체한다.
"""

from typing import List, Optional

import pytest

from announcement_extract.config import ThreeTierConfig
from announcement_extract.schema import CostRecord, FeedbackRecord, LLMCompletion
from announcement_extract.sinks import CostSink, FeedbackStore

SAMPLE_ANNOUNCEMENT = """2025년도 인공지능 융합 기술개발사업 신규과제 공고
공고일: 2025-01-10
접수시작일: 2025-02-01
신청마감일: 2025-03-15
18:00까지 접수 완료
접수시스템: IRIS 범부처통합연구지원시스템
문의처: 정보통신기획평가원 042-612-8000
지원규모: 총 52억원
과제당 연간 300백만원
정부 75%, 민간 25%
연구기간: 3년
10개 과제 선정
지원대상: 중소기업, 대학, 연구기관
"""


class FakeLLM:
    """순서대로 응답(문자열 또는 예외)을 돌려주는 LLM 대역"""

    def __init__(self, responses: Optional[List] = None, input_tokens: int = 1000,
                 output_tokens: int = 200, provider: str = "fake", model: str = "fake-model"):
        self.responses = list(responses or [])
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.provider = provider
        self.model = model
        self.calls = []

    def complete(self, system: str, prompt: str, max_tokens: int) -> LLMCompletion:
        self.calls.append({"system": system, "prompt": prompt, "max_tokens": max_tokens})
        if not self.responses:
            raise AssertionError("unexpected LLM call")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return LLMCompletion(
            text=response,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            duration_ms=5,
        )


class RecordingCostSink(CostSink):
    def __init__(self):
        self.records: List[CostRecord] = []

    def record(self, record: CostRecord) -> None:
        self.records.append(record)


class RecordingFeedbackStore(FeedbackStore):
    def __init__(self):
        self.records: List[FeedbackRecord] = []

    def append(self, record: FeedbackRecord) -> None:
        self.records.append(record)


@pytest.fixture
def sample_text():
    return SAMPLE_ANNOUNCEMENT


@pytest.fixture
def config():
    """Tier 2/3 모두 꺼진 기본 설정 (환경변수 영향 없음)"""
    return ThreeTierConfig()


@pytest.fixture
def cost_sink():
    return RecordingCostSink()


@pytest.fixture
def feedback_store():
    return RecordingFeedbackStore()
