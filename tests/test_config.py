import pytest

from context_gateway.config import GatewaySettings


def test_defaults(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("CONTEXT_GATEWAY_PORT", raising=False)
    settings = GatewaySettings(_env_file=None)  # type: ignore[call-arg]
    assert settings.port == 3000
    assert settings.path == "/mcp"
    assert settings.enable_http
    assert not settings.enable_stdio


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("CONTEXT_GATEWAY_PORT", "9123")
    monkeypatch.setenv("CONTEXT_GATEWAY_ENABLE_STDIO", "true")
    monkeypatch.setenv("CONTEXT_GATEWAY_NAME", "my-gateway")
    settings = GatewaySettings(_env_file=None)  # type: ignore[call-arg]
    assert settings.port == 9123
    assert settings.enable_stdio
    implementation = settings.implementation()
    assert implementation.name == "my-gateway"
    assert implementation.version == settings.version
