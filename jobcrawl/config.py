"""
Crawl configuration.

Source records and the job-family taxonomy are static data loaded once at
startup into an immutable CrawlConfig that is passed to the orchestrator.
Runtime knobs (database, concurrency, credentials) come from the
environment via CrawlSettings.
"""

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Pattern, Tuple

from .logger import get_logger
from .schema import validate_job_families, validate_source_config

logger = get_logger()

DATA_DIR = Path(__file__).parent / "data"
DEFAULT_SOURCES_PATH = DATA_DIR / "sources.json"
DEFAULT_FAMILIES_PATH = DATA_DIR / "job_families.json"


class ConfigError(Exception):
    """Configuration could not be loaded at all."""
    pass


@dataclass(frozen=True)
class SourceConfig:
    name: str
    ats_type: str
    search_domain: str
    job_detail_url_regex: str
    location_selectors: Tuple[str, ...] = ()
    title_selectors: Tuple[str, ...] = ()
    company_selectors: Tuple[str, ...] = ()
    id_params: Tuple[str, ...] = ()
    listing_selectors: Tuple[str, ...] = ()

    def url_pattern(self) -> Pattern:
        return re.compile(self.job_detail_url_regex, re.I)

    @classmethod
    def from_dict(cls, name: str, data: dict) -> "SourceConfig":
        return cls(
            name=name,
            ats_type=data["ats_type"],
            search_domain=data["search_domain"],
            job_detail_url_regex=data["job_detail_url_regex"],
            location_selectors=tuple(data.get("location_selectors", ())),
            title_selectors=tuple(data.get("title_selectors", ())),
            company_selectors=tuple(data.get("company_selectors", ())),
            id_params=tuple(data.get("id_params", ())),
            listing_selectors=tuple(data.get("listing_selectors", ())),
        )


@dataclass(frozen=True)
class CrawlConfig:
    sources: Mapping[str, SourceConfig]
    job_families: Tuple[Tuple[str, Tuple[str, ...]], ...]
    # Sources present in the file but unusable, with their validation errors
    invalid_sources: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))

    def family_names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.job_families)

    def aliases_for(self, family: str) -> Tuple[str, ...]:
        for name, aliases in self.job_families:
            if name == family:
                return aliases
        return ()


def _read_json(path: Path):
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot load config file {path}: {e}") from e


def build_config(sources_data: dict, families_data: dict) -> CrawlConfig:
    if not isinstance(sources_data, dict):
        raise ConfigError("Sources config must be an object keyed by source name")
    family_errors = validate_job_families(families_data)
    if family_errors:
        raise ConfigError("; ".join(family_errors))

    sources = {}
    invalid = {}
    for name, data in sources_data.items():
        errors = validate_source_config(data)
        if errors:
            logger.warning("Invalid source config, source will be skipped", source=name, errors=errors)
            invalid[name] = tuple(errors)
            continue
        sources[name] = SourceConfig.from_dict(name, data)

    if not sources:
        raise ConfigError("No usable source configuration")

    families = tuple(
        (name, tuple(details["aliases"])) for name, details in families_data.items()
    )
    return CrawlConfig(
        sources=MappingProxyType(sources),
        job_families=families,
        invalid_sources=MappingProxyType(invalid),
    )


def load_config(sources_path: Optional[Path] = None, families_path: Optional[Path] = None) -> CrawlConfig:
    """Load source and taxonomy config. Raises ConfigError if nothing is usable."""
    sources_path = Path(sources_path) if sources_path else DEFAULT_SOURCES_PATH
    families_path = Path(families_path) if families_path else DEFAULT_FAMILIES_PATH
    config = build_config(_read_json(sources_path), _read_json(families_path))
    logger.info(
        "Loaded crawl config",
        sources=list(config.sources),
        families=len(config.job_families),
    )
    return config


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class CrawlSettings:
    database_url: str = "sqlite+aiosqlite:///data/jobs.db"
    concurrency: int = 4
    request_timeout: float = 8.0  # seconds
    user_agent: str = "jobcrawl/0.1 (+https://github.com/jobcrawl/jobcrawl)"
    batch_size: int = 40
    dedup_window_days: int = 45
    stale_after_days: int = 7
    cse_key: Optional[str] = None
    cse_cx: Optional[str] = None

    @classmethod
    def from_env(cls) -> "CrawlSettings":
        return cls(
            database_url=os.getenv("JOBCRAWL_DATABASE_URL", cls.database_url),
            concurrency=max(1, _env_int("CRAWLER_CONCURRENCY", cls.concurrency)),
            request_timeout=_env_int("CRAWLER_REQUEST_TIMEOUT", 8000) / 1000.0,
            user_agent=os.getenv("CRAWLER_USER_AGENT", cls.user_agent),
            batch_size=_env_int("CRAWLER_BATCH_SIZE", cls.batch_size),
            dedup_window_days=_env_int("DEDUP_WINDOW_DAYS", cls.dedup_window_days),
            stale_after_days=_env_int("STALE_AFTER_DAYS", cls.stale_after_days),
            cse_key=os.getenv("CSE_KEY") or None,
            cse_cx=os.getenv("CSE_CX") or None,
        )
