import pytest

from mangapost.config import load_config


@pytest.fixture
def link_env(monkeypatch):
    monkeypatch.setenv("NOTIFIER", "link")
    monkeypatch.delenv("POSTS_BACKEND", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    return monkeypatch


def test_log_level_is_normalized(link_env):
    link_env.setenv("LOG_LEVEL", "debug")
    assert load_config().log_level == "DEBUG"


def test_log_level_defaults_to_info(link_env):
    assert load_config().log_level == "INFO"


def test_unknown_log_level_is_rejected(link_env):
    link_env.setenv("LOG_LEVEL", "LOUD")
    with pytest.raises(RuntimeError, match="LOG_LEVEL"):
        load_config()


def test_unknown_notifier_is_rejected(link_env):
    link_env.setenv("NOTIFIER", "carrier-pigeon")
    with pytest.raises(RuntimeError, match="NOTIFIER"):
        load_config()
