from dataclasses import fields

from spendguard.config import DetectionConfig, EngineConfig, LLMConfig, _env_list


def test_engine_config_bundles_runtime_sections():
    assert {f.name for f in fields(EngineConfig)} == {"llm", "gateway", "detection"}


def test_provider_order_comes_from_env(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDERS", " claude , gpt,, ")

    assert LLMConfig().providers == ["claude", "gpt"]


def test_env_list_default(monkeypatch):
    monkeypatch.delenv("SPENDGUARD_UNSET", raising=False)

    assert _env_list("SPENDGUARD_UNSET", "gpt,claude") == ["gpt", "claude"]


def test_detection_defaults():
    cfg = DetectionConfig()

    assert (cfg.odd_hour_start, cfg.odd_hour_end) == (2, 5)
    assert cfg.all_categories_sentinel == "total"
    assert cfg.silent_leak_max_amount == 50.0
