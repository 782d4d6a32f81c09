import argparse
import asyncio
from pathlib import Path

from . import __version__
from .cleanup import close_unseen_postings
from .config import ConfigError, CrawlSettings, load_config
from .database import create_engine_for, get_sessionmaker, init_database
from .discovery import GoogleSearchDiscovery
from .env import load_env
from .fetch import HttpFetcher
from .logger import get_logger
from .orchestrator import CrawlOrchestrator, CrawlQuery
from .storage import SnapshotStore


def _split(value):
    if not value:
        return None
    return tuple(v.strip() for v in value.split(",") if v.strip()) or None


def _load_config(args: argparse.Namespace):
    try:
        return load_config(args.sources_file, args.families_file)
    except ConfigError as e:
        raise SystemExit(f"Config error: {e}")


async def _with_store(settings: CrawlSettings, func):
    engine = create_engine_for(settings.database_url)
    try:
        await init_database(engine)
        store = SnapshotStore(get_sessionmaker(engine))
        return await func(store)
    finally:
        await engine.dispose()


def _print_counts(label: str, counts: dict) -> None:
    print(f"{label}: " + " ".join(f"{k}={v}" for k, v in counts.items()))


def _print_report(report) -> None:
    for batch in report.batches:
        label = f"[{batch.source}]" if batch.host is None else f"[{batch.source} @ {batch.host}]"
        _print_counts(label, batch.counts())
        for url, reason in batch.failures:
            print(f"  [failed] {url} -> {reason}")
        for url in batch.rate_limited_urls:
            print(f"  [rate_limited] {url}")
    for warning in report.warnings:
        print(f"[warn] {warning}")
    _print_counts("Done", report.totals())


def cmd_init_db(args: argparse.Namespace) -> None:
    settings = CrawlSettings.from_env()

    async def run(store):
        return None

    asyncio.run(_with_store(settings, run))
    print(f"Database ready: {settings.database_url}")


def cmd_crawl(args: argparse.Namespace) -> None:
    config = _load_config(args)
    settings = CrawlSettings.from_env()
    query = CrawlQuery(
        sources=_split(args.sources),
        families=_split(args.families),
        geography=args.country,
        hours=args.hours,
        batch_size=args.batch_size,
        refresh=args.refresh,
    )

    async def run(store):
        discovery = GoogleSearchDiscovery(settings.cse_key, settings.cse_cx)
        async with HttpFetcher(settings.request_timeout, settings.user_agent) as fetcher:
            orchestrator = CrawlOrchestrator(config, store, fetcher, discovery, settings)
            return await orchestrator.crawl(query)

    report = asyncio.run(_with_store(settings, run))
    _print_report(report)
    get_logger().log_metrics_summary()


def cmd_crawl_urls(args: argparse.Namespace) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    config = _load_config(args)
    settings = CrawlSettings.from_env()

    urls = []
    with input_path.open("r", encoding="utf-8") as f:
        for line in f:
            url = line.strip()
            if not url or url.startswith("#"):
                continue
            urls.append(url)

    async def run(store):
        async with HttpFetcher(settings.request_timeout, settings.user_agent) as fetcher:
            orchestrator = CrawlOrchestrator(config, store, fetcher, settings=settings)
            return await orchestrator.run_batch(args.source, urls, family_hint=args.family, refresh=args.refresh)

    result = asyncio.run(_with_store(settings, run))
    for url, reason in result.failures:
        print(f"[failed] {url} -> {reason}")
    for url in result.rate_limited_urls:
        print(f"[rate_limited] {url}")
    for warning in result.warnings:
        print(f"[warn] {warning}")
    _print_counts(f"Done. total={len(urls)}", result.counts())


def cmd_add_host(args: argparse.Namespace) -> None:
    settings = CrawlSettings.from_env()

    async def run(store):
        return await store.add_host(args.domain, ats_type=args.ats_type)

    try:
        host = asyncio.run(_with_store(settings, run))
    except ValueError as e:
        raise SystemExit(str(e))
    print(f"Host {host.domain} active (id={host.id}, ats_type={host.ats_type or 'generic'})")


def cmd_remove_host(args: argparse.Namespace) -> None:
    settings = CrawlSettings.from_env()

    async def run(store):
        return await store.deactivate_host(args.domain)

    if asyncio.run(_with_store(settings, run)):
        print(f"Host {args.domain} deactivated")
    else:
        print(f"No active host {args.domain}")


def cmd_crawl_hosts(args: argparse.Namespace) -> None:
    config = _load_config(args)
    settings = CrawlSettings.from_env()

    async def run(store):
        hosts = await store.active_hosts()
        async with HttpFetcher(settings.request_timeout, settings.user_agent) as fetcher:
            orchestrator = CrawlOrchestrator(config, store, fetcher, settings=settings)
            return await orchestrator.crawl_hosts(hosts, refresh=args.refresh)

    report = asyncio.run(_with_store(settings, run))
    if not report.batches and not report.warnings:
        print("No active hosts.")
    _print_report(report)
    get_logger().log_metrics_summary()


def cmd_close_stale(args: argparse.Namespace) -> None:
    settings = CrawlSettings.from_env()
    days = args.days if args.days is not None else settings.stale_after_days

    async def run(store):
        return await close_unseen_postings(store, days=days)

    closed = asyncio.run(_with_store(settings, run))
    print(f"Closed {closed} postings not seen in {days} days")


def cmd_list(args: argparse.Namespace) -> None:
    settings = CrawlSettings.from_env()

    async def run(store):
        return await store.list_postings(status=args.status)

    postings = asyncio.run(_with_store(settings, run))
    if not postings:
        print("No postings in store.")
        return
    print(f"Found {len(postings)} postings:\n")
    for p in postings:
        print(f"ID: {p.id} [{p.status}]")
        print(f"  Company: {p.company}")
        print(f"  Title: {p.job_title}")
        print(f"  Location: {p.location}")
        print(f"  Family: {p.job_family}")
        print(f"  URL: {p.canonical_url}")
        print()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jobcrawl", description="Job posting crawl and ingest")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--sources-file", help="Source config JSON (default: bundled sources.json)")
    parser.add_argument("--families-file", help="Job family JSON (default: bundled job_families.json)")

    subparsers = parser.add_subparsers(dest="command")
    ini = subparsers.add_parser("init-db", help="Create database tables")
    ini.set_defaults(func=cmd_init_db)

    crw = subparsers.add_parser("crawl", help="Discover postings via search and ingest them")
    crw.add_argument("--sources", help="Comma-separated source names (default: all)")
    crw.add_argument("--families", help="Comma-separated job families (default: all)")
    crw.add_argument("--country", default="United States", help="Geography filter (default: United States)")
    crw.add_argument("--hours", type=int, default=24, help="Recency window in hours (default 24)")
    crw.add_argument("--batch-size", type=int, help="Max URLs per source and family (default CRAWLER_BATCH_SIZE)")
    crw.add_argument("--refresh", action="store_true", help="Re-fetch postings that are already stored")
    crw.set_defaults(func=cmd_crawl)

    cru = subparsers.add_parser("crawl-urls", help="Ingest job posting URLs from a file")
    cru.add_argument("--source", required=True, help="Source name the URLs belong to, e.g. Greenhouse")
    cru.add_argument("--input", required=True, help="Text file with one URL per line")
    cru.add_argument("--family", help="Job family to use when a title does not classify")
    cru.add_argument("--refresh", action="store_true", help="Re-fetch postings that are already stored")
    cru.set_defaults(func=cmd_crawl_urls)

    ahs = subparsers.add_parser("add-host", help="Register a careers host for listing crawls")
    ahs.add_argument("--domain", required=True, help="Host name, e.g. careers.example.com")
    ahs.add_argument("--ats-type", help="ATS type of the host, e.g. Greenhouse (default: generic)")
    ahs.set_defaults(func=cmd_add_host)

    rhs = subparsers.add_parser("remove-host", help="Stop crawling a registered host")
    rhs.add_argument("--domain", required=True, help="Host name to deactivate")
    rhs.set_defaults(func=cmd_remove_host)

    crh = subparsers.add_parser("crawl-hosts", help="Crawl listing pages of every active host")
    crh.add_argument("--refresh", action="store_true", help="Re-fetch postings that are already stored")
    crh.set_defaults(func=cmd_crawl_hosts)

    cls = subparsers.add_parser("close-stale", help="Close postings not seen recently")
    cls.add_argument("--days", type=int, help="Days without a sighting (default STALE_AFTER_DAYS)")
    cls.set_defaults(func=cmd_close_stale)

    lst = subparsers.add_parser("list", help="List stored postings")
    lst.add_argument("--status", choices=["open", "closed"], help="Only postings with this status")
    lst.set_defaults(func=cmd_list)
    return parser


def main(argv=None):
    # Load .env if present (CSE_KEY, CSE_CX, JOBCRAWL_DATABASE_URL, etc.)
    load_env()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        try:
            args.func(args)
        except ConfigError as e:
            raise SystemExit(f"Config error: {e}")
        return

    parser.print_help()


if __name__ == "__main__":
    main()
