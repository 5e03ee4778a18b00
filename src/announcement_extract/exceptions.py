"""
추출 파이프라인 예외 정의
"""


class ExtractionError(Exception):
    """추출 파이프라인 기본 예외"""


class LLMProviderError(ExtractionError):
    """LLM 제공자 미설정 또는 API 호출 실패"""


class FeedbackStoreUnavailable(ExtractionError):
    """피드백 저장소가 아직 준비되지 않음"""


class ConfigError(ExtractionError):
    """설정 파일/환경변수 오류"""
