"""
Policy Configuration Tests

Example usage:
    pytest tests/test_policy.py -v
"""

import logging

from core.policy import (
    get_default_document_priority,
    get_default_resolution_strategy,
    get_default_unit_system,
    get_policy_summary,
    get_settings,
)


class TestSettings:
    """Test environment-driven defaults."""

    def test_defaults(self):
        settings = get_settings()

        assert settings['unit_system'] == "IP"
        assert settings['resolution_strategy'] == "priority"
        assert settings['default_document_priority'] == 0.0
        assert settings['catalog_path'] is None
        assert settings['log_level'] == "INFO"
        assert settings['log_format'] == "json"

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("CREDITKIT_UNIT_SYSTEM", "si")
        monkeypatch.setenv("CREDITKIT_RESOLUTION_STRATEGY", "Manual")
        monkeypatch.setenv("CREDITKIT_DEFAULT_DOCUMENT_PRIORITY", "5.5")

        assert get_default_unit_system() == "SI"
        assert get_default_resolution_strategy() == "manual"
        assert get_default_document_priority() == 5.5

    def test_invalid_values_fall_back(self, monkeypatch, caplog):
        monkeypatch.setenv("CREDITKIT_UNIT_SYSTEM", "metric")
        monkeypatch.setenv("CREDITKIT_DEFAULT_DOCUMENT_PRIORITY", "high")

        with caplog.at_level(logging.WARNING, logger="core.policy"):
            assert get_default_unit_system() == "IP"
            assert get_default_document_priority() == 0.0

        assert "CREDITKIT_UNIT_SYSTEM" in caplog.text
        assert "CREDITKIT_DEFAULT_DOCUMENT_PRIORITY" in caplog.text

    def test_summary(self, monkeypatch):
        monkeypatch.setenv("CREDITKIT_RESOLUTION_STRATEGY", "latest")

        summary = get_policy_summary()

        assert "Resolution strategy: latest" in summary
        assert "Catalog: built-in" in summary
