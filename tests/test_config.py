import pytest
import yaml

from config.settings import DEFAULT_CONFIG, SearchSettings
from sources.loader import SourceConfig, SourceLoader, load_source_config


class TestSearchSettings:

    def test_defaults_without_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DOCSCOUT_LOG_LEVEL", raising=False)
        settings = SearchSettings(str(tmp_path / "missing.yaml"))

        assert settings.get_top_k() == 20
        assert settings.get_render_settings()["timeout"] == 15.0
        assert settings.get_embedding_settings() == {
            'model_name': 'BAAI/bge-small-en-v1.5',
            'token_window': 16,
            'batch_size': 3,
            'batch_delay': 0.2,
            'device': None
        }
        assert settings.get_logging_settings()["level"] == "INFO"

    def test_file_values_are_deep_merged(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DOCSCOUT_LOG_LEVEL", raising=False)
        path = tmp_path / "docscout.yaml"
        path.write_text(yaml.safe_dump({'embedding': {'batch_size': 8}, 'search': {'top_k': 5}}))

        settings = SearchSettings(str(path))

        assert settings.get('embedding.batch_size') == 8
        assert settings.get('embedding.batch_delay') == 0.2
        assert settings.get_top_k() == 5
        # Defaults are never mutated by a merge
        assert DEFAULT_CONFIG['embedding']['batch_size'] == 3

    def test_env_overrides_log_level(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DOCSCOUT_LOG_LEVEL", "debug")
        settings = SearchSettings(str(tmp_path / "missing.yaml"))

        assert settings.get_logging_settings()["level"] == "DEBUG"

    def test_broken_file_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "docscout.yaml"
        path.write_text("embedding: [unclosed")

        settings = SearchSettings(str(path))
        assert settings.get('embedding.batch_size') == 3

    @pytest.mark.parametrize("content", ["- just\n- a list\n", "plain text\n"])
    def test_non_mapping_file_falls_back_to_defaults(self, tmp_path, content):
        path = tmp_path / "docscout.yaml"
        path.write_text(content)

        settings = SearchSettings(str(path))
        assert settings.get_top_k() == 20
        assert settings.get('embedding.batch_size') == 3

    def test_non_mapping_section_is_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DOCSCOUT_LOG_LEVEL", "warning")
        path = tmp_path / "docscout.yaml"
        path.write_text("logging: null\nsearch:\n  top_k: 4\n")

        settings = SearchSettings(str(path))
        assert settings.get_logging_settings()["level"] == "WARNING"
        assert settings.get_top_k() == 4

    def test_missing_key_returns_default(self, tmp_path):
        settings = SearchSettings(str(tmp_path / "missing.yaml"))
        assert settings.get('nothing.here', 'fallback') == 'fallback'

    def test_config_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text(yaml.safe_dump({'search': {'max_depth': 4}}))
        monkeypatch.setenv("DOCSCOUT_CONFIG", str(path))

        settings = SearchSettings()
        assert settings.config_path == str(path)
        assert settings.get_max_depth() == 4

    def test_reload_picks_up_changes(self, tmp_path):
        path = tmp_path / "docscout.yaml"
        path.write_text(yaml.safe_dump({'search': {'top_k': 7}}))
        settings = SearchSettings(str(path))

        path.write_text(yaml.safe_dump({'search': {'top_k': 9}}))
        settings.reload()
        assert settings.get_top_k() == 9


class TestSourceConfig:

    def test_bundled_wwdc_source(self):
        source = load_source_config("wwdc2025")

        assert source is not None
        assert source.seed_urls == ["https://developer.apple.com/documentation/updates/wwdc2025/"]
        assert source.site_origin == "https://developer.apple.com"
        assert source.max_documents == 200
        assert "/videos" in source.media_patterns

    @pytest.mark.parametrize("overrides", [
        {'name': ''},
        {'seed_urls': []},
        {'site_origin': 'developer.apple.com'},
        {'depth': 11},
        {'max_documents': 0},
        {'request_delay': -0.1},
    ])
    def test_validation(self, overrides):
        data = {'name': 'docs', 'seed_urls': ['https://example.com/documentation/'],
                'site_origin': 'https://example.com'}
        data.update(overrides)

        with pytest.raises(ValueError):
            SourceConfig.from_dict(data)

    def test_origin_is_reduced_to_scheme_and_host(self):
        source = SourceConfig(name="docs", seed_urls=["https://example.com/"],
                              site_origin="https://example.com/documentation/")
        assert source.site_origin == "https://example.com"

    def test_round_trip_through_dict(self):
        source = SourceConfig(name="docs", seed_urls=["https://example.com/"], site_origin="https://example.com")
        assert SourceConfig.from_dict(source.to_dict()) == source

    def test_loader_handles_missing_and_invalid_files(self, tmp_path):
        (tmp_path / "broken.yaml").write_text(yaml.safe_dump({'seed_urls': []}))
        (tmp_path / "good.yaml").write_text(yaml.safe_dump({
            'seed_urls': ['https://example.com/documentation/'],
            'site_origin': 'https://example.com',
            'enabled': False,
        }))
        loader = SourceLoader(tmp_path)

        assert loader.load_source_config("absent") is None
        assert loader.load_source_config("broken") is None
        assert loader.load_source_config("good").name == "good"
