import pytest

import core.config as config


def test_default_config_is_valid(monkeypatch):
    monkeypatch.setattr(config, "REQUIRE_MCP_AUTH", False)
    config.validate_and_prepare_config()


def test_threshold_out_of_range(monkeypatch):
    monkeypatch.setattr(config, "CONTEXT_MIN_SCORE", 1.5)
    with pytest.raises(RuntimeError, match="CONTEXT_MIN_SCORE"):
        config.validate_and_prepare_config()


def test_auth_requires_userinfo_url(monkeypatch):
    monkeypatch.setattr(config, "REQUIRE_MCP_AUTH", True)
    monkeypatch.setattr(config, "OAUTH_USERINFO_URL", "")
    with pytest.raises(RuntimeError, match="OAUTH_USERINFO_URL"):
        config.validate_and_prepare_config()


def test_missing_api_key_only_warns(monkeypatch, caplog):
    monkeypatch.setattr(config, "REQUIRE_MCP_AUTH", False)
    monkeypatch.setattr(config, "MEM0_API_KEY", None)
    config.validate_and_prepare_config()
    assert "MEM0_API_KEY is not set" in caplog.text


def test_env_helpers(monkeypatch):
    monkeypatch.setenv("MINNE_TEST_BOOL", "yes")
    monkeypatch.setenv("MINNE_TEST_INT", "nope")
    monkeypatch.setenv("MINNE_TEST_LIST", "a.example, ,b.example")
    assert config._get_bool("MINNE_TEST_BOOL", False) is True
    assert config._get_int("MINNE_TEST_INT", 7) == 7
    assert config._get_list("MINNE_TEST_LIST") == ["a.example", "b.example"]


@pytest.mark.parametrize("value", [float("nan"), float("inf")])
def test_non_finite_threshold_rejected(monkeypatch, value):
    monkeypatch.setattr(config, "REQUIRE_MCP_AUTH", False)
    monkeypatch.setattr(config, "SEARCH_MIN_SCORE", value)
    with pytest.raises(RuntimeError, match="SEARCH_MIN_SCORE"):
        config.validate_and_prepare_config()
