#!/usr/bin/env python3
"""
PakWheels Used Car Listing Crawler

Single entry point:
1. Read search input (JSON file and/or command line flags)
2. Build the first search page URL
3. Crawl result pages and store listings in batches

Usage:
    python src/main.py --city Lahore --make Toyota --model Corolla
    python src/main.py --input input.json --results-wanted 50
    python src/main.py --start-url "https://www.pakwheels.com/used-cars/karachi/honda-civic/"
"""

import sys
import os
import json
import logging
import argparse
import time
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Optional

# Always add project root to Python path
current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(current_dir)  # Go up from src/ to project root
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from config.config import CRAWL_CONFIG, DEBUG, LISTINGS_TABLE, OUTPUT_CONFIG
from src.errors import ConfigError, CrawlSetupError
from src.models import FilterSpec
from src.output_manager import get_output_manager
from src.scraping import RateLimitPolicy, run_crawl
from src.storage import create_sink

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool, log_dir: Optional[str]):
    """Console + file logging; verbose shows DEBUG, otherwise only warnings and errors."""
    log_level = logging.DEBUG if verbose or DEBUG else logging.WARNING
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(os.path.join(log_dir, 'crawler.log'), mode='a'))

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )
    # Connection pool chatter is not useful even in verbose mode
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Crawl PakWheels used-car listings")
    parser.add_argument("--input", help="JSON input file (city, make, model, minPrice, ..., proxyConfiguration)")
    parser.add_argument("--city")
    parser.add_argument("--make")
    parser.add_argument("--model")
    parser.add_argument("--min-price", type=int)
    parser.add_argument("--max-price", type=int)
    parser.add_argument("--min-year", type=int)
    parser.add_argument("--max-year", type=int)
    parser.add_argument("--results-wanted", type=int, help="Number of listings to collect (default 100)")
    parser.add_argument("--max-pages", type=int, help="Maximum result pages to visit (default 20)")
    parser.add_argument("--start-url", help="Explicit first page URL; overrides all filters")
    parser.add_argument("--proxy-url", action="append", dest="proxy_urls", help="Proxy URL (repeatable)")
    parser.add_argument("--use-webshare", action="store_true", help="Load proxies from the Webshare API")
    parser.add_argument("--output-format", choices=["jsonl", "csv", "supabase"], default=OUTPUT_CONFIG['format'])
    parser.add_argument("--output-dir", default=OUTPUT_CONFIG['output_dir'])
    parser.add_argument("--table", default=LISTINGS_TABLE, help="Supabase table for --output-format supabase")
    parser.add_argument("--max-concurrency", type=int, default=CRAWL_CONFIG['max_concurrency'])
    parser.add_argument("--no-delay", action="store_true", help="Skip the random delay before each request")
    parser.add_argument("--verbose", action="store_true", help="Enable detailed logging")
    parser.add_argument("--quiet", action="store_true", help="Suppress console progress output")
    return parser


def load_input(args: argparse.Namespace) -> Dict[str, Any]:
    """Merge the optional JSON input file with command line flags (flags win)."""
    data: Dict[str, Any] = {}
    if args.input:
        try:
            with open(args.input, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Cannot read input file {args.input}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"Input file {args.input} must contain a JSON object")

    flag_map = {
        "city": args.city,
        "make": args.make,
        "model": args.model,
        "minPrice": args.min_price,
        "maxPrice": args.max_price,
        "minYear": args.min_year,
        "maxYear": args.max_year,
        "results_wanted": args.results_wanted,
        "max_pages": args.max_pages,
        "startUrl": args.start_url,
    }
    for key, value in flag_map.items():
        if value is not None:
            data[key] = value

    if args.proxy_urls or args.use_webshare:
        proxy_configuration = dict(data.get("proxyConfiguration") or {})
        if args.proxy_urls:
            proxy_configuration["proxyUrls"] = args.proxy_urls
        if args.use_webshare:
            proxy_configuration["useWebshare"] = True
        data["proxyConfiguration"] = proxy_configuration

    return data


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, OUTPUT_CONFIG['log_dir'])

    output = get_output_manager()
    output.quiet_mode = args.quiet
    output.startup_banner()

    started = time.time()
    try:
        filters = FilterSpec.from_input(load_input(args))
        run_name = f"pakwheels-{datetime.now().strftime('%Y%m%dT%H%M%S')}"
        sink = create_sink(args.output_format, args.output_dir, run_name, table_name=args.table)
        rate_limit = RateLimitPolicy(0, 0) if args.no_delay else None

        summary = run_crawl(filters, sink, rate_limit=rate_limit, max_concurrency=args.max_concurrency)

        summary_data = asdict(summary)
        summary_data['duration_seconds'] = time.time() - started
        output.session_summary(summary_data)

        if summary.seed_failed:
            raise CrawlSetupError(f"Start URL could not be crawled: {summary.abandoned_urls[0]}")
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        output.error(f"Configuration error: {e}")
        return 2
    except CrawlSetupError as e:
        logger.error(str(e))
        output.error(str(e))
        return 1

    if summary.unflushed_records:
        logger.error(f"{summary.unflushed_records} listings were never stored")
        output.error(f"{summary.unflushed_records} listings could not be written to the {args.output_format} sink")
        return 3

    output.success(f"Scraping complete. Total cars saved: {summary.saved}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
