from __future__ import annotations
import os
from typing import Optional

from spendguard.core.exceptions import (
    FatalProviderError,
    ProviderError,
    ProviderTimeoutError,
    TransientProviderError,
)

# HTTP statuses that signal overload or a passing outage
TRANSIENT_STATUS_CODES = {408, 409, 429, 500, 502, 503, 504, 529}

# ---- Provider Abstraction ------------------------------------------------

class BaseLLMProvider:
    name = "base"

    def __init__(self, model: Optional[str] = None, temperature: float = 0.0, max_tokens: int = 400,
                 timeout: float = 20.0):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

    # Text-only generation. Raises TransientProviderError or FatalProviderError.
    def generate(self, system: str, user: str, json_mode: bool = False) -> str:
        raise NotImplementedError

    def _ensure_json(self, text: str) -> str:
        # Strip code fences or stray text around JSON; return raw JSON string
        t = text.strip()
        if t.startswith("```"):
            t = t.strip("`")
            # remove possible "json" language hint
            if t.startswith("json"):
                t = t[len("json"):].lstrip()
        # Find first '{' and last '}' as a simple recovery
        l, r = t.find("{"), t.rfind("}")
        if l != -1 and r != -1 and r > l:
            return t[l:r+1]
        return t

    def _translate_error(self, sdk, e: Exception) -> ProviderError:
        """Map an SDK exception onto the transient/fatal taxonomy.

        Both the openai and anthropic SDKs expose the same exception names.
        """
        if isinstance(e, sdk.APITimeoutError):
            return ProviderTimeoutError(f"{self.name} timed out after {self.timeout}s", provider=self.name)
        if isinstance(e, (sdk.RateLimitError, sdk.APIConnectionError, sdk.InternalServerError)):
            return TransientProviderError(f"{self.name}: {e}", provider=self.name)
        if isinstance(e, sdk.APIStatusError) and e.status_code in TRANSIENT_STATUS_CODES:
            return TransientProviderError(f"{self.name} returned {e.status_code}: {e}", provider=self.name)
        return FatalProviderError(f"{self.name}: {e}", provider=self.name)

# ---- OpenAI (GPT) --------------------------------------------------------

class OpenAIProvider(BaseLLMProvider):
    name = "openai"

    def __init__(self, model: Optional[str] = None, temperature: float = 0.0, max_tokens: int = 400,
                 timeout: float = 20.0):
        super().__init__(model, temperature, max_tokens, timeout)
        try:
            import openai  # type: ignore
        except Exception as e:
            raise RuntimeError("openai package is required for OpenAIProvider. pip install openai") from e
        self._sdk = openai
        # Retries are owned by the classification gateway
        self._client = openai.OpenAI(timeout=timeout, max_retries=0)
        if self.model is None:
            self.model = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    def generate(self, system: str, user: str, json_mode: bool = False) -> str:
        msgs = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
        kwargs = {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "messages": msgs,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            resp = self._client.chat.completions.create(**kwargs)
        except self._sdk.OpenAIError as e:
            raise self._translate_error(self._sdk, e) from e
        out = resp.choices[0].message.content or ""
        return out if not json_mode else self._ensure_json(out)

# ---- Anthropic (Claude) ---------------------------------------------------

class AnthropicProvider(BaseLLMProvider):
    name = "anthropic"

    def __init__(self, model: Optional[str] = None, temperature: float = 0.0, max_tokens: int = 400,
                 timeout: float = 20.0):
        super().__init__(model, temperature, max_tokens, timeout)
        try:
            import anthropic  # type: ignore
        except Exception as e:
            raise RuntimeError("anthropic package is required for AnthropicProvider. pip install anthropic") from e
        self._sdk = anthropic
        self._client = anthropic.Anthropic(timeout=timeout, max_retries=0)
        if self.model is None:
            self.model = os.getenv("ANTHROPIC_MODEL", "claude-3-5-haiku-latest")

    def generate(self, system: str, user: str, json_mode: bool = False) -> str:
        # Anthropic Messages API
        content = [{"type": "text", "text": user}]
        try:
            resp = self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=system,
                messages=[{"role": "user", "content": content}],
            )
        except self._sdk.AnthropicError as e:
            raise self._translate_error(self._sdk, e) from e
        out = "".join([b.text for b in resp.content if b.type == "text"])
        return out if not json_mode else self._ensure_json(out)

# ---- Factory --------------------------------------------------------------

def make_provider(
    provider_name: str = "gpt",
    model: Optional[str] = None,
    temperature: float = 0.0,
    max_tokens: int = 400,
    timeout: float = 20.0,
) -> BaseLLMProvider:
    name = (provider_name or "gpt").lower()
    if name in ["gpt", "openai"]:
        return OpenAIProvider(model=model, temperature=temperature, max_tokens=max_tokens, timeout=timeout)
    elif name in ["claude", "anthropic"]:
        return AnthropicProvider(model=model, temperature=temperature, max_tokens=max_tokens, timeout=timeout)
    raise ValueError(f"Unknown provider: {provider_name}")
