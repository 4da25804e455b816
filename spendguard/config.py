from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional
import os


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class DatabaseConfig:
    # Get database credentials from environment
    user: str = os.getenv("DB_USER", "postgres")
    password: str = os.getenv("DB_PASSWORD", "postgres")
    host: str = os.getenv("DB_HOST", "localhost")
    port: str = os.getenv("DB_PORT", "5432")
    name: str = os.getenv("DB_NAME", "spendguard")

    @property
    def url(self) -> str:
        """Construct database URL from components or use DATABASE_URL if provided"""
        return os.getenv(
            "DATABASE_URL",
            f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"
        )


@dataclass
class LLMConfig:
    # Providers in fallback order, primary first
    providers: List[str] = field(default_factory=lambda: _env_list("LLM_PROVIDERS", "gpt,claude"))
    # Default models are left None so provider sets a sensible default
    openai_model: Optional[str] = os.getenv("OPENAI_MODEL")
    anthropic_model: Optional[str] = os.getenv("ANTHROPIC_MODEL")
    temperature: float = 0.0
    max_output_tokens: int = 400
    # Seconds per provider call, enforced by the SDK client
    timeout: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "20"))


@dataclass
class GatewayConfig:
    max_retries: int = 3
    backoff_base: float = 1.0    # 1s, 2s, 4s
    cache_capacity: int = 1000
    cache_bucket_size: float = 100.0


@dataclass
class DetectionConfig:
    duplicate_window_minutes: int = 10
    lookback_days: int = 30
    spike_multiplier: float = 3.0
    overuse_share_percent: float = 60.0
    overuse_min_monthly_total: float = 1000.0
    silent_leak_max_amount: float = 50.0
    silent_leak_min_prior: int = 2
    high_value_amount: float = 5000.0
    odd_hour_start: int = 2      # inclusive
    odd_hour_end: int = 5        # exclusive
    all_categories_sentinel: str = "total"
    suspicious_keywords: List[str] = field(default_factory=lambda: ["unknown", "cash", "transfer", "mystery"])
    uncategorized_categories: List[str] = field(default_factory=lambda: ["other", "miscellaneous", "uncategorized"])


@dataclass
class EngineConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
