import pytest
from pydantic import ValidationError as PydanticValidationError

from finac_chat.config.settings import Settings


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("FINAC_CHAT_BASE_URL", "https://finac.example.com/")
    monkeypatch.setenv("FINAC_CHAT_STREAM_IDLE_TIMEOUT", "5")
    s = Settings()
    assert s.base_url == "https://finac.example.com"
    assert s.stream_idle_timeout == 5.0


def test_yaml_config_file(monkeypatch, tmp_path):
    cfg = tmp_path / "finac.yaml"
    cfg.write_text("chats_path: /api/v2/chats\nhttp_timeout: 12\n", encoding="utf-8")
    monkeypatch.setenv("FINAC_CHAT_CONFIG_FILE", str(cfg))
    s = Settings()
    assert s.chats_path == "/api/v2/chats"
    assert s.http_timeout == 12.0


def test_error_template_must_reference_error():
    with pytest.raises(PydanticValidationError):
        Settings(error_reply_template="Something went wrong")


@pytest.mark.parametrize("template", ["{error} {0}", "{error} {detail}", "{error"])
def test_error_template_only_allows_error_placeholder(template):
    with pytest.raises(PydanticValidationError):
        Settings(error_reply_template=template)


def test_error_template_with_escaped_braces():
    s = Settings(error_reply_template="{{oops}} {error}")
    assert s.error_reply_template.format(error="boom") == "{oops} boom"
