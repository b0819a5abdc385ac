"""Tests for devloop.utils.guidance.load_guidance."""

from unittest.mock import patch

from devloop.utils.guidance import load_guidance


class TestLoadGuidance:
    def test_returns_rules_for_docker(self, mock_config):
        result = load_guidance(docker=True)
        assert "GET /health" in result
        assert '{"status": "degraded"}' in result
        assert "named `db`" in result
        assert "port 3000" in result

    def test_empty_for_local(self, mock_config):
        assert load_guidance(docker=False) == ""

    def test_empty_when_disabled(self):
        with patch("devloop.config._config", {"contract_guidance_enabled": False}):
            assert load_guidance(docker=True) == ""

    def test_empty_when_key_missing(self):
        with patch("devloop.config._config", {}):
            assert load_guidance(docker=True) == ""

    def test_uses_verify_settings(self):
        config = {
            "contract_guidance_enabled": True,
            "verify": {"port": 8080, "health_path": "/healthz", "db_service": "postgres"},
        }
        with patch("devloop.config._config", config):
            result = load_guidance(docker=True)
        assert "port 8080" in result
        assert "GET /healthz" in result
        assert "named `postgres`" in result
