"""Unit tests for environment-driven settings."""

from pathlib import Path

from pydantic import ValidationError
import pytest

from tinysearch.config import Settings


@pytest.mark.unit
class TestSettingsDefaults:
    def test_defaults(self, monkeypatch):
        for key in ("HOST", "PORT", "INDEX_BATCH_SIZE", "LOG_LEVEL", "LOG_JSON", "DATABASE_PATH", "ANALYZER"):
            monkeypatch.delenv(key, raising=False)

        settings = Settings(_env_file=None)

        assert settings.host == "127.0.0.1"
        assert settings.port == 3000
        assert settings.index_batch_size == 1000
        assert settings.database_path == Path("data/documents.sqlite3")
        assert settings.log_level == "info"
        assert settings.log_json is True
        assert settings.seed_index is True
        assert settings.index_load_path is None
        assert settings.otlp_protocol == "http"
        assert settings.analyzer == "default"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("INDEX_BATCH_SIZE", "7")
        monkeypatch.setenv("INDEX_PERSIST_PATH", "/tmp/index.json")

        settings = Settings(_env_file=None)

        assert settings.port == 8080
        assert settings.index_batch_size == 7
        assert settings.index_persist_path == Path("/tmp/index.json")

    def test_env_file(self, tmp_path):
        env_file = tmp_path / "custom.env"
        env_file.write_text("OTLP_ENDPOINT=http://collector:4318/v1/traces\nOTLP_PROTOCOL=http\n")

        settings = Settings(_env_file=env_file)

        assert settings.otlp_endpoint == "http://collector:4318/v1/traces"


@pytest.mark.unit
class TestSettingsValidation:
    @pytest.mark.parametrize("port", [0, 70000])
    def test_port_bounds(self, port):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, port=port)

    def test_batch_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, index_batch_size=0)

    def test_log_level_normalized(self):
        assert Settings(_env_file=None, log_level=" WARNING ").log_level == "warning"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError, match="log_level"):
            Settings(_env_file=None, log_level="verbose")

    def test_unknown_otlp_protocol_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, otlp_protocol="udp")

    def test_analyzer_profile_resolves_tokenizer_options(self):
        settings = Settings(_env_file=None, analyzer=" English-Stop ")

        assert settings.analyzer == "english-stop"
        assert settings.tokenize_options().remove_stopwords is True

    def test_unknown_analyzer_rejected(self):
        with pytest.raises(ValidationError, match="Unknown analyzer"):
            Settings(_env_file=None, analyzer="klingon")


@pytest.mark.unit
class TestSeeding:
    def test_skip_switch_disables_seed(self, monkeypatch):
        monkeypatch.setenv("SKIP_SEED_INDEX", "true")

        settings = Settings(_env_file=None)

        assert settings.seed_index is False
        assert settings.should_seed() is False

    def test_seed_disabled_directly(self):
        assert Settings(_env_file=None, seed_index=False).should_seed() is False

    def test_load_path_takes_precedence_over_seed(self, tmp_path):
        settings = Settings(_env_file=None, index_load_path=tmp_path / "index.json")

        assert settings.seed_index is True
        assert settings.should_seed() is False

    def test_seeds_by_default(self):
        assert Settings(_env_file=None).should_seed() is True
