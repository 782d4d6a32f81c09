"""
Tests for the command line entry point.
"""

import pytest

from jobcrawl import __version__
from jobcrawl.app import build_parser, main


@pytest.fixture
def database_url(tmp_path, monkeypatch):
    url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("JOBCRAWL_DATABASE_URL", url)
    monkeypatch.chdir(tmp_path)
    return url


class TestParser:
    """Argument parsing."""

    def test_crawl_defaults(self):
        """Search crawl flags default to a 24 hour US crawl without refresh."""
        args = build_parser().parse_args(["crawl"])
        assert args.country == "United States"
        assert args.hours == 24
        assert args.batch_size is None
        assert args.refresh is False

    def test_crawl_urls_requires_source_and_input(self):
        """crawl-urls refuses to run without --source."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["crawl-urls", "--input", "urls.txt"])

    def test_crawl_hosts_refresh_flag(self):
        """crawl-hosts accepts --refresh."""
        assert build_parser().parse_args(["crawl-hosts", "--refresh"]).refresh is True

    def test_add_host_requires_domain(self):
        """add-host refuses to run without --domain."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["add-host"])

    def test_list_status_choices(self):
        """Only open and closed are accepted as a status filter."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["list", "--status", "archived"])


class TestMain:
    """Commands run end to end against a SQLite file."""

    def test_version(self, capsys):
        """--version prints the package version."""
        main(["--version"])
        assert capsys.readouterr().out.strip() == __version__

    def test_no_command_prints_help(self, capsys):
        """Running without a command prints usage."""
        main([])
        assert "usage: jobcrawl" in capsys.readouterr().out

    def test_init_db_then_empty_list(self, database_url, capsys):
        """init-db creates the tables and list reports an empty store."""
        main(["init-db"])
        main(["list"])
        out = capsys.readouterr().out
        assert f"Database ready: {database_url}" in out
        assert "No postings in store." in out

    def test_close_stale_on_empty_store(self, database_url, capsys):
        """close-stale on an empty store closes nothing."""
        main(["close-stale", "--days", "3"])
        assert "Closed 0 postings not seen in 3 days" in capsys.readouterr().out

    def test_crawl_urls_missing_input(self, database_url):
        """A missing URL file exits with an error."""
        with pytest.raises(SystemExit, match="Input file not found"):
            main(["crawl-urls", "--source", "Greenhouse", "--input", "missing.txt"])

    def test_crawl_urls_unknown_source_warns(self, database_url, config_files, tmp_path, capsys):
        """An unknown source is reported as a warning, not a crash."""
        sources_path, families_path = config_files
        urls = tmp_path / "urls.txt"
        urls.write_text("# comment\nhttps://example.com/jobs/1\n\n")

        main([
            "--sources-file", str(sources_path),
            "--families-file", str(families_path),
            "crawl-urls", "--source", "Nowhere", "--input", str(urls),
        ])

        out = capsys.readouterr().out
        assert "[warn] Source 'Nowhere' skipped: not configured" in out
        assert "Done. total=1" in out

    def test_bad_config_file_exits(self, database_url, tmp_path):
        """Unreadable config exits with a config error."""
        broken = tmp_path / "broken.json"
        broken.write_text("{not json")
        with pytest.raises(SystemExit, match="Config error"):
            main(["--sources-file", str(broken), "crawl", "--sources", "Greenhouse"])

    def test_add_and_remove_host(self, database_url, capsys):
        """Hosts can be registered and deactivated from the command line."""
        main(["add-host", "--domain", "https://Careers.Acme.com/", "--ats-type", "Greenhouse"])
        main(["remove-host", "--domain", "careers.acme.com"])
        main(["remove-host", "--domain", "careers.acme.com"])

        out = capsys.readouterr().out
        assert "Host careers.acme.com active (id=1, ats_type=Greenhouse)" in out
        assert "Host careers.acme.com deactivated" in out
        assert "No active host careers.acme.com" in out

    def test_add_blank_host_exits(self, database_url):
        """A blank domain is refused."""
        with pytest.raises(SystemExit, match="must not be empty"):
            main(["add-host", "--domain", " "])

    def test_crawl_hosts_without_hosts(self, database_url, config_files, capsys):
        """crawl-hosts with nothing registered reports it and fetches nothing."""
        sources_path, families_path = config_files
        main([
            "--sources-file", str(sources_path),
            "--families-file", str(families_path),
            "crawl-hosts",
        ])
        out = capsys.readouterr().out
        assert "No active hosts." in out
        assert "Done: created=0" in out
