"""
3단계 추출 설정

환경변수:
    ENABLE_TIER2_EXTRACTION=true/false
    ENABLE_TIER3_EXTRACTION=true/false
    MAX_TIER2_COST_PER_JOB (기본 50원)
    MAX_TIER3_COST_PER_JOB (기본 300원)
    FORCE_TIER3_EXTRACTION=true/false (관리자 강제 승격)
"""
import math
import os
from typing import Any, Dict, Mapping, Optional
import logging

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

USD_TO_KRW = 1350


class EscalationPolicy(BaseModel):
    """Tier 3 승격 임계값"""
    missing_ratio_threshold: float = Field(0.5, description="미추출 비율이 이 값을 넘으면 승격", ge=0.0, le=1.0)
    min_tier1_fields: int = Field(3, description="Tier 1 추출 필드 수가 이보다 적으면 신규 양식 의심", ge=0)
    tier2_success_ratio: float = Field(0.5, description="Tier 2 성공 비율이 이보다 낮으면 신규 양식 의심", ge=0.0, le=1.0)
    min_text_length: int = Field(100, description="텍스트가 이보다 짧으면 스캔 문서 의심", ge=0)


class TierModelConfig(BaseModel):
    """모델 단계별 설정 (토큰당 원화 단가 포함)"""
    provider: str = Field("anthropic", description="LLM 제공자: anthropic/openai/ollama")
    model: str = Field(..., description="모델 이름")
    base_url: Optional[str] = Field(None, description="API/Ollama 주소")
    max_input_chars: int = Field(..., description="입력 텍스트 최대 문자 수", gt=0)
    max_output_tokens: int = Field(..., description="최대 출력 토큰", gt=0)
    input_cost_per_token: float = Field(..., description="입력 토큰당 원화 비용", ge=0.0)
    output_cost_per_token: float = Field(..., description="출력 토큰당 원화 비용", ge=0.0)

    def cost_krw(self, input_tokens: int, output_tokens: int) -> float:
        return input_tokens * self.input_cost_per_token + output_tokens * self.output_cost_per_token


def default_tier2_model() -> TierModelConfig:
    return TierModelConfig(
        model="claude-haiku-4-5",
        max_input_chars=4000,
        max_output_tokens=1024,
        input_cost_per_token=(1 / 1_000_000) * USD_TO_KRW,
        output_cost_per_token=(5 / 1_000_000) * USD_TO_KRW,
    )


def default_tier3_model() -> TierModelConfig:
    return TierModelConfig(
        model="claude-opus-4-5",
        max_input_chars=15000,
        max_output_tokens=4096,
        input_cost_per_token=(5 / 1_000_000) * USD_TO_KRW,
        output_cost_per_token=(25 / 1_000_000) * USD_TO_KRW,
    )


class ThreeTierConfig(BaseModel):
    """오케스트레이터 1개당 한 번 만들어 각 단계에 명시적으로 전달하는 설정"""
    enable_tier2: bool = Field(False, description="Tier 2 활성화")
    enable_tier3: bool = Field(False, description="Tier 3 활성화")
    max_tier2_cost_per_job: float = Field(50, description="작업당 Tier 2 비용 상한 (원)", ge=0, allow_inf_nan=False)
    max_tier3_cost_per_job: float = Field(300, description="작업당 Tier 3 비용 상한 (원)", ge=0, allow_inf_nan=False)
    force_escalate: bool = Field(False, description="Tier 3 강제 실행 (관리자 플래그)")
    escalation: EscalationPolicy = Field(default_factory=EscalationPolicy)
    tier2: TierModelConfig = Field(default_factory=default_tier2_model)
    tier3: TierModelConfig = Field(default_factory=default_tier3_model)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None,
                 base: Optional["ThreeTierConfig"] = None) -> "ThreeTierConfig":
        """환경변수로 설정 구성 (설정된 변수만 base 위에 덮어씀)"""
        env = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}

        for var, key in (('ENABLE_TIER2_EXTRACTION', 'enable_tier2'),
                         ('ENABLE_TIER3_EXTRACTION', 'enable_tier3'),
                         ('FORCE_TIER3_EXTRACTION', 'force_escalate')):
            if var in env:
                overrides[key] = env[var].strip().lower() == 'true'

        for var, key in (('MAX_TIER2_COST_PER_JOB', 'max_tier2_cost_per_job'),
                         ('MAX_TIER3_COST_PER_JOB', 'max_tier3_cost_per_job')):
            if var in env:
                try:
                    value = float(env[var])
                except ValueError:
                    logger.warning(f"{var}={env[var]!r} 숫자 아님, 기본값 사용")
                    continue
                if not math.isfinite(value) or value < 0:
                    logger.warning(f"{var}={env[var]!r} 유효한 상한 아님 (0 이상 유한값), 기본값 사용")
                    continue
                overrides[key] = value

        base = base or cls()
        return cls.model_validate({**base.model_dump(), **overrides})


def _merge_section(model: BaseModel, section: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    data = model.model_dump()
    data.update(section or {})
    return data


def load_config(config_path: Optional[str] = None,
                environ: Optional[Mapping[str, str]] = None) -> ThreeTierConfig:
    """
    YAML 파일의 `extraction:` 항목을 기본값 위에 적용한 뒤 환경변수로 덮어씀

    Args:
        config_path: YAML 설정 파일 경로 (없으면 환경변수만 사용)
        environ: 테스트용 환경변수 매핑

    Raises:
        ConfigError: YAML 값이 설정 스키마에 맞지 않을 때
    """
    base = ThreeTierConfig()

    if config_path:
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                raw = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning(f"설정 파일 없음, 환경변수만 사용: {config_path}")
            raw = {}
        except yaml.YAMLError as e:
            raise ConfigError(f"설정 파일 파싱 실패: {config_path}: {e}") from e

        section = dict(raw.get('extraction') or {})
        try:
            section['escalation'] = _merge_section(base.escalation, section.get('escalation'))
            section['tier2'] = _merge_section(base.tier2, section.get('tier2'))
            section['tier3'] = _merge_section(base.tier3, section.get('tier3'))
            base = ThreeTierConfig.model_validate(section)
        except ValidationError as e:
            raise ConfigError(f"잘못된 추출 설정: {e}") from e

    return ThreeTierConfig.from_env(environ, base=base)
