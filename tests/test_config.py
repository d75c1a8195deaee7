import pytest

from config import Configuration

ENV_KEYS = [
    "CATALOG_URL",
    "CATALOG_API_KEY",
    "CATALOG_PATH",
    "MAX_RESULTS",
    "AVERAGE_ITEM_PRICE",
    "WEIGHT_SOCIAL",
    "LLM_PROVIDER",
    "LLM_BASE_URL",
    "LOCAL_LLM",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    cfg = Configuration.from_env()
    assert cfg.default_max_distance_m == 2000.0
    assert cfg.walk_speed_m_per_min == 80.0
    assert cfg.max_results == 20
    assert cfg.weight_distance + cfg.weight_rating + cfg.weight_keywords + cfg.weight_social == pytest.approx(1.0)
    assert not cfg.llm_enabled


def test_from_env_coerces_values(monkeypatch):
    monkeypatch.setenv("MAX_RESULTS", "5")
    monkeypatch.setenv("AVERAGE_ITEM_PRICE", "12.5")
    monkeypatch.setenv("LLM_PROVIDER", "ollama")
    cfg = Configuration.from_env()
    assert cfg.max_results == 5
    assert cfg.average_item_price == 12.5
    assert cfg.llm_enabled


def test_overrides_win_over_env(monkeypatch):
    monkeypatch.setenv("MAX_RESULTS", "5")
    cfg = Configuration.from_env({"max_results": 7, "catalog_url": None})
    assert cfg.max_results == 7
    assert cfg.catalog_url is None


def test_require_catalog():
    with pytest.raises(ValueError):
        Configuration().require_catalog()
    Configuration(catalog_path="vendors.json").require_catalog()


def test_log_summary_masks_api_key():
    cfg = Configuration(catalog_url="https://catalog.example.com", catalog_api_key="abcd1234efgh5678")
    summary = cfg.log_summary()
    assert "abcd...5678" in summary
    assert "abcd1234efgh5678" not in summary


def test_sanitized_ollama_url():
    assert Configuration(ollama_base_url="http://host:11434/").sanitized_ollama_url() == "http://host:11434/v1"
