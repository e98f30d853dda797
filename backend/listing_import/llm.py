"""
LLM Client
==========

Anthropic Claude behind a small provider interface, plus LLMHandler which adds
the shared rate limiter and a bounded retry:

- every attempt waits on the rate limiter first
- any exception is retried after a fixed delay
- AIServiceError once the attempts are used up
"""

import base64
import time
from abc import ABC, abstractmethod
from typing import Optional, Dict, List, Tuple, Callable

from anthropic import Anthropic

from .config import config
from .errors import AIServiceError
from .logger import get_strategy_logger
from .rate_limiter import MinIntervalRateLimiter, default_rate_limiter

log = get_strategy_logger('llm')

# (raw bytes, mime type)
ImageInput = Tuple[bytes, str]


class LLMInterface(ABC):
    """Abstract base class for LLM providers"""

    @abstractmethod
    def generate(self, prompt: str, max_tokens: int = 1000, temperature: float = 0.0,
                 images: Optional[List[ImageInput]] = None) -> str:
        """Generate text response from prompt (and optional images)"""

    def get_last_usage(self) -> Optional[Dict[str, int]]:
        """Return token usage from last call: {input_tokens, output_tokens}"""
        return getattr(self, '_last_usage', None)


class ClaudeInterface(LLMInterface):
    """Anthropic Claude interface"""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key or config.ANTHROPIC_API_KEY
        if not self.api_key:
            raise AIServiceError("Claude API key not found")
        self.client = Anthropic(api_key=self.api_key)
        self.model = model or config.CLAUDE_MODEL
        self._last_usage = None

    def generate(self, prompt: str, max_tokens: int = 1000, temperature: float = 0.0,
                 images: Optional[List[ImageInput]] = None) -> str:
        content = []
        for data, mime_type in images or []:
            content.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": mime_type,
                    "data": base64.b64encode(data).decode('ascii'),
                },
            })
        content.append({"type": "text", "text": prompt})

        response = self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": content}]
        )
        if hasattr(response, 'usage'):
            self._last_usage = {
                'input_tokens': response.usage.input_tokens,
                'output_tokens': response.usage.output_tokens
            }
        text_blocks = [b.text for b in response.content if getattr(b, 'type', None) == 'text']
        return "\n".join(text_blocks).strip()


class LLMHandler:
    """
    Rate-limited, retrying wrapper around an LLMInterface.

    Args:
        client: provider; a ClaudeInterface is created on first use when omitted
        rate_limiter: shared limiter (process-wide default when omitted)
        max_attempts: total attempts per call
        retry_delay: fixed seconds between attempts
    """

    def __init__(
        self,
        client: Optional[LLMInterface] = None,
        rate_limiter: Optional[MinIntervalRateLimiter] = None,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._client = client
        self.rate_limiter = rate_limiter or default_rate_limiter
        self.max_attempts = max(1, max_attempts if max_attempts is not None else config.AI_MAX_ATTEMPTS)
        self.retry_delay = retry_delay if retry_delay is not None else config.AI_RETRY_DELAY_SECONDS
        self._sleep = sleep

    @property
    def client(self) -> LLMInterface:
        if self._client is None:
            self._client = ClaudeInterface()
        return self._client

    def call(self, prompt: str, max_tokens: int = 1000, images: Optional[List[ImageInput]] = None) -> str:
        """
        Send one prompt and return the reply text.

        Raises:
            AIServiceError: every attempt failed
        """
        client = self.client
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            self.rate_limiter.acquire()
            start_time = time.time()
            try:
                reply = client.generate(prompt, max_tokens=max_tokens, images=images)
                log.debug(f"Model replied in {(time.time() - start_time) * 1000:.0f}ms (attempt {attempt})")
                return reply
            except Exception as e:
                last_error = e
                log.warning(f"Model call attempt {attempt}/{self.max_attempts} failed: {e}")
                if attempt < self.max_attempts:
                    self._sleep(self.retry_delay)

        raise AIServiceError(f"Model call failed after {self.max_attempts} attempts: {last_error}") from last_error
