import importlib
import logging
import os
import sys

import pytest

import stakepay.core


@pytest.fixture(autouse=True)
def restore_config():
    original = sys.modules.get("stakepay.core.config")
    yield
    if original is not None:
        sys.modules["stakepay.core.config"] = original
        stakepay.core.config = original


def _reload_config(monkeypatch, env: dict[str, str]):
    for key in list(os.environ.keys()):
        if key.startswith("STAKEPAY_"):
            monkeypatch.delenv(key, raising=False)
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    if "stakepay.core.config" in sys.modules:
        del sys.modules["stakepay.core.config"]
    import stakepay.core.config as config

    importlib.reload(config)
    return config


def test_defaults(monkeypatch):
    config = _reload_config(monkeypatch, {})

    assert config.NETWORK == "testnet"
    assert config.CHAIN_ID == 1
    assert config.COST_OF_POST == 35_000
    assert config.ENTRY_POINT_ADDRESS == "0x5ff137d4b0fdcd49dca30c7cf57e578a026d2789"
    assert config.LOG_LEVEL == "INFO"
    assert config.LOG_FILE == ""


def test_env_overrides(monkeypatch):
    config = _reload_config(
        monkeypatch,
        {
            "STAKEPAY_CHAIN_ID": "5",
            "STAKEPAY_COST_OF_POST": " 60000 ",
            "STAKEPAY_ENTRY_POINT_ADDRESS": "0xABCDEFabcdefABCDEFabcdefABCDEFabcdefABCD",
            "STAKEPAY_LOG_LEVEL": "debug",
        },
    )

    assert config.CHAIN_ID == 5
    assert config.COST_OF_POST == 60_000
    assert config.ENTRY_POINT_ADDRESS == "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd"
    assert config.LOG_LEVEL == "DEBUG"


def test_non_integer_rejected(monkeypatch):
    with pytest.raises(Exception, match="STAKEPAY_COST_OF_POST"):
        _reload_config(monkeypatch, {"STAKEPAY_COST_OF_POST": "lots"})


def test_negative_cost_of_post_rejected(monkeypatch):
    with pytest.raises(Exception, match="must be >= 0"):
        _reload_config(monkeypatch, {"STAKEPAY_COST_OF_POST": "-1"})


def test_chain_id_must_be_positive(monkeypatch):
    with pytest.raises(Exception, match="STAKEPAY_CHAIN_ID"):
        _reload_config(monkeypatch, {"STAKEPAY_CHAIN_ID": "0"})


def test_invalid_log_level_rejected(monkeypatch):
    with pytest.raises(Exception, match="log level"):
        _reload_config(monkeypatch, {"STAKEPAY_LOG_LEVEL": "chatty"})


def test_zero_cost_of_post_on_mainnet_warns(monkeypatch, caplog):
    with caplog.at_level(logging.WARNING, logger="stakepay.core.config"):
        config = _reload_config(
            monkeypatch,
            {"STAKEPAY_NETWORK": "mainnet", "STAKEPAY_COST_OF_POST": "0"},
        )

    assert config.COST_OF_POST == 0
    assert any(getattr(r, "event", "") == "config.cost_of_post_zero" for r in caplog.records)
