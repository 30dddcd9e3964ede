import logging

import pytest

from utils.config import EditorConfig
from utils.logging_utils import configure_logging

ENV_NAMES = (
    "DMS_API_BASE_URL", "DMS_API_TOKEN", "DMS_REQUEST_TIMEOUT",
    "DMS_RENDER_SCALE", "DMS_EDITOR_DEBUG", "DMS_EDITOR_LOG_DIR",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults_without_environment(clean_env):
    config = EditorConfig()
    assert config.api_base_url == ""
    assert config.api_token is None
    assert config.request_timeout == 30.0
    assert config.render_scale == 1.4
    assert not config.debug
    assert config.log_dir is None


def test_reads_environment_values(clean_env):
    clean_env.setenv("DMS_API_BASE_URL", "https://dms.example.com/")
    clean_env.setenv("DMS_API_TOKEN", "token")
    clean_env.setenv("DMS_REQUEST_TIMEOUT", "12.5")
    clean_env.setenv("DMS_RENDER_SCALE", "2")
    clean_env.setenv("DMS_EDITOR_DEBUG", "yes")
    clean_env.setenv("DMS_EDITOR_LOG_DIR", "/tmp/editor-logs")

    config = EditorConfig()
    assert config.api_base_url == "https://dms.example.com"
    assert config.api_token == "token"
    assert config.request_timeout == 12.5
    assert config.render_scale == 2.0
    assert config.debug
    assert config.log_dir == "/tmp/editor-logs"


def test_invalid_numbers_fall_back_to_defaults(clean_env):
    clean_env.setenv("DMS_REQUEST_TIMEOUT", "soon")
    clean_env.setenv("DMS_RENDER_SCALE", "-1")
    config = EditorConfig()
    assert config.request_timeout == 30.0
    assert config.render_scale == 1.4


def test_empty_values_are_treated_as_unset(clean_env):
    clean_env.setenv("DMS_API_TOKEN", "")
    clean_env.setenv("DMS_RENDER_SCALE", "")
    config = EditorConfig()
    assert config.api_token is None
    assert config.render_scale == 1.4


def test_keyword_arguments_override_environment(clean_env):
    clean_env.setenv("DMS_RENDER_SCALE", "3")
    config = EditorConfig(render_scale=1.0, api_base_url="https://dms.example.com//")
    assert config.render_scale == 1.0
    assert config.api_base_url == "https://dms.example.com"


def test_configure_logging_writes_to_file_once(tmp_path):
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    had_flag = getattr(root, "_pdf_editor_configured", False)
    if had_flag:
        delattr(root, "_pdf_editor_configured")
    try:
        configure_logging(log_dir=str(tmp_path))
        configure_logging(log_dir=str(tmp_path))
        added = [h for h in root.handlers if h not in saved_handlers]
        assert len(added) == 1

        logging.getLogger("tests").info("hello log")
        for handler in added:
            handler.flush()
        assert "hello log" in (tmp_path / "pdf_editor.log").read_text(encoding="utf-8")
    finally:
        for handler in [h for h in root.handlers if h not in saved_handlers]:
            root.removeHandler(handler)
            handler.close()
        root.setLevel(saved_level)
        if hasattr(root, "_pdf_editor_configured"):
            delattr(root, "_pdf_editor_configured")
        if had_flag:
            setattr(root, "_pdf_editor_configured", True)
