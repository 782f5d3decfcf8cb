"""
CLI entry point for the Mechinweb portal backend.

Wires the currency and pricing components together for command-line
use: rate inspection, conversion, formatting, location lookup, catalog
pricing and running the API server.
"""

import argparse
import logging
import sys
from pathlib import Path

from src.pricing.pricing_engine import PricingEngine
from src.pricing.service_catalog import CatalogError, get_catalog
from src.services.currency_service import CurrencyService
from src.utils.config_loader import AppConfig, load_config, load_env
from src.utils.logging_config import setup_logging


logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed command line arguments.
    """
    parser = argparse.ArgumentParser(
        description="Mechinweb portal backend",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m src.main rates --refresh
    python -m src.main convert 100 USD INR
    python -m src.main format 1234.5 JPY
    python -m src.main prices --currency EUR
    python -m src.main serve
        """,
    )

    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=Path("config/config.yaml"),
        help="Path to configuration file",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    rates = subparsers.add_parser("rates", help="Show exchange rates against USD")
    rates.add_argument("--refresh", action="store_true", help="Ignore cached rates")
    rates.add_argument("currencies", nargs="*", help="Only show these currencies")

    convert = subparsers.add_parser("convert", help="Convert an amount between currencies")
    convert.add_argument("amount", type=float)
    convert.add_argument("from_currency")
    convert.add_argument("to_currency")

    fmt = subparsers.add_parser("format", help="Format an amount for display")
    fmt.add_argument("amount", type=float)
    fmt.add_argument("currency")

    location = subparsers.add_parser("location", help="Detect location and currency")
    location.add_argument("--ip", help="Look up this address instead of the caller")

    prices = subparsers.add_parser("prices", help="Show catalog prices in a currency")
    prices.add_argument("--currency", default="USD")
    prices.add_argument("--service", help="Only show this service id")

    serve = subparsers.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", help="Bind address (default: from config)")
    serve.add_argument("--port", type=int, help="Port (default: from config)")
    serve.add_argument("--reload", action="store_true", help="Auto-reload on code changes")

    return parser.parse_args(argv)


def run_rates(service: CurrencyService, args: argparse.Namespace) -> int:
    rates = service.rates.refresh_rates() if args.refresh else service.rates.fetch_all_rates()
    wanted = [c.upper() for c in args.currencies] or sorted(rates)

    print(f"\nExchange rates per 1 USD ({service.rates.source}):")
    for code in wanted:
        if code in rates:
            print(f"  {code}: {rates[code]:.4f}")
        else:
            print(f"  {code}: not available")
    return 0


def run_convert(service: CurrencyService, args: argparse.Namespace) -> int:
    result = service.quote(args.amount, args.from_currency.upper(), args.to_currency.upper())
    print(
        f"\n{args.amount} {result['from_currency']} = {result['formatted']} "
        f"({result['converted']} {result['to_currency']}, rates: {result['rate_source'] or 'n/a'})"
    )
    return 0


def run_format(service: CurrencyService, args: argparse.Namespace) -> int:
    print(service.format(args.amount, args.currency.upper()))
    return 0


def run_location(service: CurrencyService, args: argparse.Namespace) -> int:
    location = service.detect_location(args.ip)
    print(f"\nCountry: {location.country_name} ({location.country_code})")
    print(f"Currency: {location.currency}")
    print(f"Source: {service.detector.source}")
    return 0


def run_prices(service: CurrencyService, args: argparse.Namespace) -> int:
    engine = PricingEngine(get_catalog(), service.converter, service.tables)
    currency = args.currency.upper()

    try:
        if args.service:
            services = [engine.get_localized_pricing(args.service, currency)]
        else:
            services = engine.get_all_localized_services(currency)
    except CatalogError as e:
        print(f"\n✗ Error: {e}")
        return 1

    print("\n" + "=" * 60)
    print(f"SERVICE PRICES ({currency})")
    print("=" * 60)
    for entry in services:
        print(f"\n  {entry['name']} [{entry['id']}]")
        for tier_key, tier in entry["tiers"].items():
            print(f"    {tier_key:<10} {tier['formatted']:>14}  {tier['name']}")
    print("=" * 60 + "\n")
    return 0


def run_serve(config: AppConfig, args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "src.webapp.main:app",
        host=args.host or config.server.host,
        port=args.port or config.server.port,
        reload=args.reload,
    )
    return 0


COMMANDS = {
    "rates": run_rates,
    "convert": run_convert,
    "format": run_format,
    "location": run_location,
    "prices": run_prices,
}


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point.

    Returns:
        int: Exit code.
    """
    load_env()
    args = parse_args(argv)
    config = load_config(args.config)

    level = "DEBUG" if args.verbose else config.logging.level
    setup_logging(level=level, log_format=config.logging.format, log_file=config.paths.log_path(config.logging.file))

    try:
        if args.command == "serve":
            return run_serve(config, args)
        return COMMANDS[args.command](CurrencyService(config), args)
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.")
        return 130
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        print(f"\n✗ Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
