"""
Tests for application settings.
"""

from unittest.mock import patch

from fmg_import.config import Settings
from fmg_import.core.parser import parse_map_data


class TestSettings:
    """Test settings defaults and environment overrides."""

    def test_defaults(self, monkeypatch):
        """Defaults match FMG's own."""
        for name in ("CITY_GENERATOR_URL", "DEFAULT_POPULATION_RATE", "MAX_UPLOAD_MB"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings()

        assert settings.city_generator_url == "https://watabou.github.io/city-generator/"
        assert settings.default_population_rate == 1000
        assert settings.default_urban_density == 10
        assert settings.default_urbanization == 1
        assert settings.max_upload_mb == 50

    def test_environment_override(self, monkeypatch):
        """Values are read from environment variables."""
        monkeypatch.setenv("CITY_GENERATOR_URL", "https://example.com/mfcg")
        monkeypatch.setenv("DEFAULT_URBAN_DENSITY", "12")
        monkeypatch.setenv("API_PORT", "9000")
        settings = Settings()

        assert settings.city_generator_url == "https://example.com/mfcg"
        assert settings.default_urban_density == 12
        assert settings.api_port == 9000


class TestSettingsInParser:
    """Test settings flowing into parsed maps."""

    def test_city_generator_url(self, modern_text):
        """The configured generator URL ends up in the map context."""
        with patch("fmg_import.core.parser.app_settings.city_generator_url", "https://example.com/c"):
            context = parse_map_data(modern_text).context

        assert context.city_generator_url == "https://example.com/c"

    def test_default_settings_for_legacy(self, legacy_lines):
        """Legacy files without a settings line use the configured defaults."""
        with patch("fmg_import.core.parser.app_settings.default_population_rate", 250):
            context = parse_map_data("\n".join(legacy_lines[:1] + legacy_lines[2:])).context

        assert context.settings.population_rate == 250
        assert context.settings.urban_density == 10
