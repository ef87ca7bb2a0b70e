"""Unit tests for application settings."""

import pytest
from pydantic import ValidationError

from mitre_data_quality.core.config import Settings


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.logs_index_pattern == "logs-*"
        assert settings.score_refresh_interval_seconds == 604800
        assert settings.score_jitter_min_seconds == 60
        assert settings.score_jitter_max_seconds == 360

    def test_host_list(self):
        settings = Settings(
            _env_file=None, elasticsearch_hosts="https://es-1:9200, https://es-2:9200,"
        )

        assert settings.elasticsearch_host_list == ["https://es-1:9200", "https://es-2:9200"]

    def test_cors_origin_list(self):
        settings = Settings(_env_file=None, cors_origins="http://a, http://b")

        assert settings.cors_origin_list == ["http://a", "http://b"]

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("RESULTS_INDEX_NAME", "custom-results")

        assert Settings(_env_file=None).results_index_name == "custom-results"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"score_refresh_interval_seconds": 0},
            {"score_jitter_min_seconds": -1},
            {"score_jitter_min_seconds": 400, "score_jitter_max_seconds": 360},
            {"settings_cache_ttl_seconds": -1},
            {"scroll_page_size": 0},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises((ValueError, ValidationError)):
            Settings(_env_file=None, **overrides)
