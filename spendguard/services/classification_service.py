"""
Classification gateway: asks an external LLM whether a transaction looks irregular.

Providers are tried in order for one logical attempt. Every provider except the
last gets a single try; the last one is retried with exponential backoff, but
only for transient failures. A total failure is "no opinion" (None), never an
exception.
"""
from __future__ import annotations

import json
import logging
import re
import time
from typing import Callable, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from spendguard.config import DetectionConfig, EngineConfig, GatewayConfig
from spendguard.core.exceptions import ClassificationParseError, TransientProviderError
from spendguard.pipeline.cache import ClassificationCache
from spendguard.pipeline.prompts import ANOMALY_SYSTEM, build_anomaly_prompt
from spendguard.pipeline.providers import BaseLLMProvider, make_provider
from spendguard.schemas.anomaly import ClassificationResult

logger = logging.getLogger(__name__)


class ClassificationGateway:
    """Stateless apart from its cache, which it owns."""

    def __init__(
        self,
        providers: Sequence[BaseLLMProvider],
        cache: Optional[ClassificationCache] = None,
        config: Optional[GatewayConfig] = None,
        detection: Optional[DetectionConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.providers: List[BaseLLMProvider] = list(providers)
        self.config = config or GatewayConfig()
        self.detection = detection or DetectionConfig()
        self.cache = cache if cache is not None else ClassificationCache(
            capacity=self.config.cache_capacity, bucket_size=self.config.cache_bucket_size
        )
        self._sleep = sleep
        keywords = "|".join(re.escape(k) for k in self.detection.suspicious_keywords)
        self._suspicious = re.compile(keywords, re.IGNORECASE) if keywords else None

    @classmethod
    def from_config(cls, cfg: EngineConfig, cache: Optional[ClassificationCache] = None) -> "ClassificationGateway":
        """Build the provider chain from LLMConfig, skipping providers that cannot start."""
        providers: List[BaseLLMProvider] = []
        for name in cfg.llm.providers:
            model = cfg.llm.anthropic_model if name.lower() in ("claude", "anthropic") else cfg.llm.openai_model
            try:
                providers.append(make_provider(
                    name,
                    model=model,
                    temperature=cfg.llm.temperature,
                    max_tokens=cfg.llm.max_output_tokens,
                    timeout=cfg.llm.timeout,
                ))
            except Exception as e:
                # Missing SDK or API key: the chain simply gets shorter
                logger.warning(f"Classification provider '{name}' unavailable: {e}")
        if not providers:
            logger.warning("No classification providers configured, AI analysis disabled")
        return cls(providers, cache=cache, config=cfg.gateway, detection=cfg.detection)

    def is_available(self) -> bool:
        return bool(self.providers)

    def should_classify(self, transaction, rule_fired: bool) -> Tuple[bool, str]:
        """Decide whether a transaction is worth an external call, and why."""
        if rule_fired:
            return True, "rule verification"
        if float(transaction.amount) > self.detection.high_value_amount:
            return True, "high value"
        if (transaction.category or "").lower() in self.detection.uncategorized_categories:
            return True, "uncategorized"
        if self._suspicious and self._suspicious.search(transaction.description or ""):
            return True, "suspicious keyword"
        return False, ""

    def classify(self, transaction, signals: Optional[Sequence[str]] = None) -> Optional[ClassificationResult]:
        if not self.providers:
            return None

        cached = self.cache.get(transaction.category, transaction.amount)
        if cached is not None:
            logger.debug(f"Classification cache hit for {transaction.category}/{transaction.amount}")
            return cached

        prompt = build_anomaly_prompt(transaction, signals)
        *fallbacks, last = self.providers

        for provider in fallbacks:
            try:
                result = self._call_provider(provider, prompt)
            except Exception as e:
                logger.warning(f"Provider {provider.name} failed, falling through: {e}")
                continue
            self.cache.put(transaction.category, transaction.amount, result)
            return result

        result = self._call_with_retry(last, prompt)
        if result is not None:
            self.cache.put(transaction.category, transaction.amount, result)
        return result

    def _call_with_retry(self, provider: BaseLLMProvider, prompt: str) -> Optional[ClassificationResult]:
        attempts = self.config.max_retries + 1
        for attempt in range(attempts):
            try:
                return self._call_provider(provider, prompt)
            except TransientProviderError as e:
                if attempt == attempts - 1:
                    logger.error(f"Provider {provider.name} still failing after {attempt} retries: {e}")
                    return None
                delay = self.config.backoff_base * (2 ** attempt)
                logger.warning(f"Transient failure from {provider.name} ({e}), retrying in {delay:.0f}s")
                self._sleep(delay)
            except Exception as e:
                logger.error(f"Provider {provider.name} failed, giving up: {e}")
                return None
        return None

    def _call_provider(self, provider: BaseLLMProvider, prompt: str) -> ClassificationResult:
        raw = provider.generate(ANOMALY_SYSTEM, prompt, json_mode=True)
        return self._parse(raw, provider.name)

    def _parse(self, raw: str, provider_name: str) -> ClassificationResult:
        try:
            payload = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as e:
            raise ClassificationParseError(f"Response is not JSON: {e}", provider=provider_name) from e
        if not isinstance(payload, dict) or "isAnomaly" not in payload:
            raise ClassificationParseError("Response is missing 'isAnomaly'", provider=provider_name)
        if not isinstance(payload["isAnomaly"], bool):
            raise ClassificationParseError("'isAnomaly' must be a boolean", provider=provider_name)
        try:
            return ClassificationResult(**{**payload, "provider": provider_name})
        except ValidationError as e:
            raise ClassificationParseError(f"Unexpected response shape: {e}", provider=provider_name) from e
