"""
LLM 클라이언트 모듈
"""
import json
import os
import time
from typing import Optional
import logging

from .exceptions import LLMProviderError
from .schema import LLMCompletion

logger = logging.getLogger(__name__)

try:
    import anthropic
    ANTHROPIC_AVAILABLE = True
except ImportError:
    ANTHROPIC_AVAILABLE = False
    logger.warning("anthropic 미설치, Anthropic 기능 사용 불가")

try:
    import openai
    OPENAI_AVAILABLE = True
except ImportError:
    OPENAI_AVAILABLE = False
    logger.warning("openai 미설치, OpenAI 기능 사용 불가")

try:
    import ollama
    OLLAMA_AVAILABLE = True
except ImportError:
    OLLAMA_AVAILABLE = False
    logger.warning("ollama 미설치, Ollama 기능 사용 불가")

API_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}

PLACEHOLDER_API_KEY = "your_api_key_here"


def estimate_tokens(text: str) -> int:
    """토큰 수 근사 (문자 4개당 1토큰)"""
    return len(text) // 4


def extract_json_object(text: str) -> Optional[str]:
    """
    응답에서 첫 번째 균형 잡힌 `{...}` 구간을 반환

    모델이 JSON 앞뒤에 설명을 붙이거나 코드 펜스로 감싸도 객체만 잘라낸다.
    문자열 리터럴 안의 중괄호는 세지 않는다.
    """
    start = text.find('{')
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    return None


def load_json_object(text: str):
    """첫 JSON 객체를 파싱 (없으면 ValueError)"""
    json_str = extract_json_object(text)
    if json_str is None:
        raise ValueError("JSON 객체 없음")
    return json.loads(json_str)


class LLMClient:
    """
    LLM 호출 래퍼

    제공자(anthropic/openai/ollama)마다 다른 SDK 호출을 감싸고
    응답 텍스트와 입력/출력 토큰 수를 LLMCompletion으로 돌려준다.
    캐시나 호출 통계는 두지 않는다. 작업 간에 공유되는 상태가 없어야
    비용 계산이 작업 단위로 정확하다.
    """

    def __init__(self, provider: str = "anthropic", model: Optional[str] = None,
                 api_key: Optional[str] = None, base_url: Optional[str] = None,
                 debug_mode: bool = False):
        self.provider = provider.lower()
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.debug_mode = debug_mode

        self.client = None

    def _resolve_api_key(self) -> str:
        env_name = API_KEY_ENV[self.provider]
        key = self.api_key or os.environ.get(env_name, "")
        if not key or key == PLACEHOLDER_API_KEY:
            raise LLMProviderError(f"{env_name} 미설정")
        return key

    def _initialize_client(self):
        """LLM 클라이언트 초기화 (첫 호출 시)"""
        if self.client is not None:
            return self.client

        if self.provider == "anthropic":
            if not ANTHROPIC_AVAILABLE:
                raise LLMProviderError("anthropic 패키지 미설치")
            kwargs = {"api_key": self._resolve_api_key()}
            if self.base_url:
                kwargs["base_url"] = self.base_url
            self.client = anthropic.Anthropic(**kwargs)
        elif self.provider == "openai":
            if not OPENAI_AVAILABLE:
                raise LLMProviderError("openai 패키지 미설치")
            kwargs = {"api_key": self._resolve_api_key()}
            if self.base_url:
                kwargs["base_url"] = self.base_url
            self.client = openai.OpenAI(**kwargs)
        elif self.provider == "ollama":
            if not OLLAMA_AVAILABLE:
                raise LLMProviderError("ollama 패키지 미설치")
            self.client = ollama.Client(host=self.base_url) if self.base_url else ollama.Client()
        else:
            raise LLMProviderError(f"지원하지 않는 LLM 제공자: {self.provider}")

        return self.client

    def complete(self, system: str, prompt: str, max_tokens: int) -> LLMCompletion:
        """
        단일 프롬프트 호출 (temperature 0)

        Raises:
            LLMProviderError: 키 누락, 패키지 미설치, API 오류
        """
        self._initialize_client()

        logger.info(f"📤 {self.provider}:{self.model} 호출, 프롬프트 {len(prompt)}자")
        if self.debug_mode:
            logger.info("🔍 [디버그] 전체 프롬프트:")
            logger.info("-" * 50)
            logger.info(prompt)
            logger.info("-" * 50)

        start = time.time()
        try:
            if self.provider == "anthropic":
                completion = self._call_anthropic(system, prompt, max_tokens)
            elif self.provider == "openai":
                completion = self._call_openai(system, prompt, max_tokens)
            else:
                completion = self._call_ollama(system, prompt, max_tokens)
        except LLMProviderError:
            raise
        except Exception as e:
            raise LLMProviderError(f"{self.provider} API 호출 실패: {e}") from e

        completion.duration_ms = int((time.time() - start) * 1000)

        logger.info(f"📥 응답 {len(completion.text)}자, 토큰 입력={completion.input_tokens} 출력={completion.output_tokens}")
        if self.debug_mode:
            logger.info("🔍 [디버그] 전체 응답:")
            logger.info("-" * 50)
            logger.info(completion.text)
            logger.info("-" * 50)

        return completion

    def _call_anthropic(self, system: str, prompt: str, max_tokens: int) -> LLMCompletion:
        response = self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=0,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        text = "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
        return LLMCompletion(
            text=text,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )

    def _call_openai(self, system: str, prompt: str, max_tokens: int) -> LLMCompletion:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=0,
            max_tokens=max_tokens,
        )
        usage = response.usage
        return LLMCompletion(
            text=response.choices[0].message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )

    def _call_ollama(self, system: str, prompt: str, max_tokens: int) -> LLMCompletion:
        response = self.client.chat(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            options={"temperature": 0, "num_predict": max_tokens},
        )
        return LLMCompletion(
            text=response['message']['content'] or "",
            input_tokens=response.get('prompt_eval_count') or 0,
            output_tokens=response.get('eval_count') or 0,
        )
