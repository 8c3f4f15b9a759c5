from __future__ import annotations

import pytest

from settings import DEV_JWT_SECRET, settings, validate_env_settings


def test_validate_env_allows_dev_missing(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "dev", raising=False)
    monkeypatch.setattr(settings, "DATABASE_URL", "", raising=False)
    monkeypatch.setattr(settings, "JWT_SECRET", DEV_JWT_SECRET, raising=False)
    validate_env_settings()


def test_validate_env_staging_fails_on_missing(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "staging", raising=False)
    monkeypatch.setattr(settings, "DATABASE_URL", "", raising=False)
    monkeypatch.setattr(settings, "JWT_SECRET", DEV_JWT_SECRET, raising=False)
    monkeypatch.setattr(settings, "SETTLEMENT_PROVIDER", "HTTP", raising=False)
    monkeypatch.setattr(settings, "SETTLEMENT_HTTP_URL", "", raising=False)
    monkeypatch.setattr(settings, "SETTLEMENT_HTTP_API_KEY", "", raising=False)

    with pytest.raises(RuntimeError) as exc:
        validate_env_settings()

    message = str(exc.value)
    assert "DATABASE_URL" in message
    assert "JWT_SECRET" in message
    assert "SETTLEMENT_HTTP_URL" in message
    assert "SETTLEMENT_HTTP_API_KEY" in message


def test_validate_env_prod_rejects_mock_provider(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "prod", raising=False)
    monkeypatch.setattr(settings, "DATABASE_URL", "postgresql://example", raising=False)
    monkeypatch.setattr(settings, "JWT_SECRET", "a-real-secret-value-123", raising=False)
    monkeypatch.setattr(settings, "SETTLEMENT_PROVIDER", "MOCK", raising=False)

    with pytest.raises(RuntimeError) as exc:
        validate_env_settings()

    assert "SETTLEMENT_PROVIDER" in str(exc.value)


def test_validate_env_prod_ok(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "prod", raising=False)
    monkeypatch.setattr(settings, "DATABASE_URL", "postgresql://example", raising=False)
    monkeypatch.setattr(settings, "JWT_SECRET", "a-real-secret-value-123", raising=False)
    monkeypatch.setattr(settings, "SETTLEMENT_PROVIDER", "HTTP", raising=False)
    monkeypatch.setattr(settings, "SETTLEMENT_HTTP_URL", "https://pay.example/settle", raising=False)
    monkeypatch.setattr(settings, "SETTLEMENT_HTTP_API_KEY", "key", raising=False)
    validate_env_settings()
