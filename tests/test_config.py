"""
Tests for config loading and runtime settings.
"""

import os

import pytest

from jobcrawl.config import (
    ConfigError,
    CrawlSettings,
    SourceConfig,
    build_config,
    load_config,
)
from jobcrawl.env import load_env
from jobcrawl.sources import build_strategy


class TestLoadConfig:
    """Test loading source and family configuration."""

    def test_bundled_defaults(self):
        """The bundled config loads every built-in ATS source."""
        config = load_config()
        assert {"Greenhouse", "Lever", "Ashby", "Workable", "Workday", "iCIMS"} <= set(config.sources)
        assert config.sources["Greenhouse"].id_params == ("gh_jid",)
        assert config.invalid_sources == {}

    def test_from_files(self, config_files):
        """Config is loaded from explicit file paths."""
        sources_path, families_path = config_files
        config = load_config(sources_path, families_path)
        assert set(config.sources) == {"Greenhouse", "Lever"}
        assert config.family_names() == ("Engineering", "Sales")
        assert config.aliases_for("Sales") == ("Account Executive", "Sales Engineer")
        assert config.aliases_for("Nope") == ()

    def test_sources_are_read_only(self, crawl_config):
        """The loaded source mapping cannot be modified."""
        with pytest.raises(TypeError):
            crawl_config.sources["Other"] = crawl_config.sources["Lever"]

    def test_missing_file_is_fatal(self, tmp_path):
        """A missing config file raises ConfigError."""
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.json")

    def test_malformed_file_is_fatal(self, tmp_path, config_files):
        """A config file that is not JSON raises ConfigError."""
        bad = tmp_path / "bad.json"
        bad.write_text("{not json")
        with pytest.raises(ConfigError):
            load_config(bad, config_files[1])

    def test_invalid_source_is_skipped(self, sources_data, families_data):
        """An invalid source is left out and its errors are kept."""
        sources_data["Broken"] = {"ats_type": "Lever", "job_detail_url_regex": "("}
        config = build_config(sources_data, families_data)
        assert "Broken" not in config.sources
        assert "Broken" in config.invalid_sources
        assert len(config.invalid_sources["Broken"]) == 2

    def test_no_usable_source_is_fatal(self, families_data):
        """Config with no valid source raises ConfigError."""
        with pytest.raises(ConfigError):
            build_config({"Broken": {"ats_type": "Lever"}}, families_data)

    def test_invalid_families_are_fatal(self, sources_data):
        """A malformed job family table raises ConfigError."""
        with pytest.raises(ConfigError):
            build_config(sources_data, {"Engineering": {}})


class TestSourceConfig:
    """Source records."""

    def test_url_pattern_is_case_insensitive(self, crawl_config):
        """Detail-URL regexes ignore case."""
        pattern = crawl_config.sources["Greenhouse"].url_pattern()
        assert pattern.search("https://Boards.Example.io/acme/jobs/42")

    def test_from_dict_defaults(self):
        """Optional list fields default to empty tuples."""
        source = SourceConfig.from_dict("X", {
            "ats_type": "Lever",
            "search_domain": "jobs.lever.co",
            "job_detail_url_regex": "x",
        })
        assert source.location_selectors == ()
        assert source.id_params == ()
        assert source.listing_selectors == ()

    def test_listing_selectors_run_before_built_in(self, sources_data, families_data):
        """Configured listing selectors are tried ahead of the ATS defaults."""
        sources_data["Greenhouse"]["listing_selectors"] = ["section.jobs a"]
        source = build_config(sources_data, families_data).sources["Greenhouse"]
        assert source.listing_selectors == ("section.jobs a",)
        assert build_strategy(source).listing_selectors == ("section.jobs a", ".opening a[href]")


class TestCrawlSettings:
    """Environment-driven runtime settings."""

    def test_defaults(self, monkeypatch):
        """Settings fall back to defaults without environment variables."""
        for name in ("CRAWLER_CONCURRENCY", "CRAWLER_REQUEST_TIMEOUT", "CSE_KEY", "CSE_CX", "JOBCRAWL_DATABASE_URL"):
            monkeypatch.delenv(name, raising=False)
        settings = CrawlSettings.from_env()
        assert settings.concurrency == 4
        assert settings.request_timeout == 8.0
        assert settings.batch_size == 40
        assert settings.cse_key is None

    def test_from_env(self, monkeypatch):
        """Settings are read from the environment."""
        monkeypatch.setenv("CRAWLER_CONCURRENCY", "8")
        monkeypatch.setenv("CRAWLER_REQUEST_TIMEOUT", "2500")
        monkeypatch.setenv("CSE_KEY", "k")
        monkeypatch.setenv("CSE_CX", "cx")
        settings = CrawlSettings.from_env()
        assert settings.concurrency == 8
        assert settings.request_timeout == 2.5
        assert settings.cse_key == "k"
        assert settings.cse_cx == "cx"

    def test_bad_integer(self, monkeypatch):
        """A non-integer numeric setting raises ConfigError."""
        monkeypatch.setenv("CRAWLER_CONCURRENCY", "many")
        with pytest.raises(ConfigError):
            CrawlSettings.from_env()


class TestEnvFile:
    """Loading .env files."""

    def test_dotenv_does_not_override(self, tmp_path, monkeypatch):
        """Values from .env never replace variables already set."""
        (tmp_path / ".env").write_text("CSE_KEY=from-file\nCSE_CX=cx-from-file\n")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("CSE_KEY", "from-env")
        # Registered first so teardown removes whatever load_env writes
        monkeypatch.setenv("CSE_CX", "unset")
        monkeypatch.delenv("CSE_CX")

        load_env()

        assert os.environ["CSE_KEY"] == "from-env"
        assert os.environ["CSE_CX"] == "cx-from-file"
