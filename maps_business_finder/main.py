#!/usr/bin/env python3
"""
main.py - Main entry point for the Maps business finder
------------------------------------------------------
Parses the command line, runs one scrape and prints the top results.
"""
import argparse
import os
import signal
import sys
from datetime import datetime
from typing import List, Optional

from maps_business_finder.data_processing.scoring import SCORING_STRATEGIES
from maps_business_finder.models import ScrapeOptions
from maps_business_finder.output.exporters import Exporter
from maps_business_finder.scraping.scraper_engine import ScraperEngine
from maps_business_finder.utils.config import (
    DEFAULT_EXPORT_FORMATS, DEFAULT_SCORING_STRATEGY, DEFAULT_SEARCH_RADIUS,
    HEADLESS, LOG_DIR, OUTPUT_DIR
)
from maps_business_finder.utils.logging_config import setup_logging


def parse_location(value: str) -> dict:
    """Parse ``LAT,LON[,LABEL]`` into a coordinate mapping."""
    parts = [p.strip() for p in value.split(",", 2)]
    if len(parts) < 2:
        raise argparse.ArgumentTypeError(f"Expected LAT,LON[,LABEL], got {value!r}")
    try:
        lat, lon = float(parts[0]), float(parts[1])
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid coordinates: {value!r}") from None
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        raise argparse.ArgumentTypeError(f"Coordinates out of range: {value!r}")
    location = {"lat": lat, "lon": lon}
    if len(parts) == 3 and parts[2]:
        location["address"] = parts[2]
    return location


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    p = argparse.ArgumentParser("Find and rank businesses on Google Maps")
    p.add_argument("search_term", help="What to search for, e.g. 'pizzaria'")
    p.add_argument("--min-rating", type=float, help="Drop businesses rated below this")
    p.add_argument("--min-reviews", type=int, help="Drop businesses with fewer reviews")
    p.add_argument("--min-tier", type=str, help="Drop businesses below this tier, e.g. 'Good'")
    p.add_argument("--limit", type=int, help="Keep at most this many businesses")
    p.add_argument("--formats", type=str, default=",".join(DEFAULT_EXPORT_FORMATS),
                   help="Comma separated export formats (json,csv); empty to skip export")
    p.add_argument("--radius", type=int, default=DEFAULT_SEARCH_RADIUS,
                   help="Search radius in km (2, 5, 10, 20, 50 or 100)")
    p.add_argument("--location", type=parse_location, action="append", default=[],
                   help="Search around LAT,LON[,LABEL]; repeat for several locations "
                        "(write --location=LAT,LON when the latitude is negative)")
    p.add_argument("--scoring-strategy", choices=sorted(SCORING_STRATEGIES), default=DEFAULT_SCORING_STRATEGY,
                   help="Composite score formula")
    p.add_argument("--keep-duplicates", action="store_true", help="Skip the normalised-name dedup pass")
    p.add_argument("--output-dir", type=str, default=OUTPUT_DIR, help="Where export files go")
    p.add_argument("--top", type=int, default=10, help="How many results to print")
    p.add_argument("--headless", action="store_true", default=HEADLESS, help="Run Chrome headless")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def setup_log_directory():
    """Set up the log directory for the Maps business finder."""
    log_dir = os.path.join(os.getcwd(), LOG_DIR)
    os.makedirs(log_dir, exist_ok=True)
    return log_dir


def build_options(args: argparse.Namespace) -> ScrapeOptions:
    coordinates = None
    if len(args.location) == 1:
        coordinates = args.location[0]
    elif args.location:
        coordinates = args.location
    return ScrapeOptions.from_dict({
        "min_rating": args.min_rating,
        "min_reviews": args.min_reviews,
        "min_tier": args.min_tier,
        "limit": args.limit,
        "export_formats": [f for f in args.formats.split(",") if f.strip()],
        "search_radius": args.radius,
        "coordinates": coordinates,
        "remove_duplicates": not args.keep_duplicates,
        "scoring_strategy": args.scoring_strategy,
    })


def print_results(result: dict, top: int):
    businesses = result["results"]["businesses"][:top]
    summary = result["results"]["summary"]
    print()
    print(f"{result['results']['total']} businesses for '{result['search_term']}' "
          f"(avg rating {summary.get('avg_rating', 0)}, took {result['performance']['duration_formatted']})")
    for b in businesses:
        print(f"{b['rank']:>3}. {b['name']} - {b['rating']} ({b['review_count']} reviews) "
              f"score={b['composite_score']} [{b['tier']}] {b['address']}")
    for fmt, info in result.get("export", {}).get("files", {}).items():
        if info.get("success"):
            print(f"  {fmt}: {info['filepath']}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the Maps business finder."""
    args = parse_args(argv)

    log_dir = setup_log_directory()
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_filename = os.path.join(log_dir, f"maps_business_finder_{timestamp}.log")
    log = setup_logging(log_file=log_filename, debug=args.debug)

    log.info("=" * 80)
    log.info("Starting Maps business finder")
    log.info("Log file: %s", log_filename)
    log.info("Arguments: %s", args)
    log.info("=" * 80)

    try:
        options = build_options(args)
    except ValueError as e:
        log.critical("Invalid options: %s", e)
        return 2

    engine = ScraperEngine(exporter=Exporter(output_dir=args.output_dir, logger=log),
                           logger=log, headless=args.headless)

    # First Ctrl+C asks the run to stop cleanly
    def on_interrupt(signum, frame):
        log.warning("Interrupted by user, stopping...")
        engine.stop_scraping()

    previous = signal.signal(signal.SIGINT, on_interrupt)
    try:
        result = engine.scrape_businesses(args.search_term, options)
    finally:
        signal.signal(signal.SIGINT, previous)

    if not result["success"]:
        log.error("✗ scrape failed – %s", result["error"])
        return 1

    log.info("✓ finished – %d businesses", result["results"]["total"])
    print_results(result, args.top)
    return 0


if __name__ == "__main__":
    sys.exit(main())
