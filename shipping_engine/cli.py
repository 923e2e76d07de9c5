"""
Shipping Engine CLI

Pack an order or quote it against the configured rate source.

Usage:
    # Pack 3 small and 1 large item with the configured box catalog
    shipping-engine pack --small 3 --large 1

    # Quote an order (mock rates unless EASYPOST_API_KEY is set)
    shipping-engine quote --small 2 --medium 2 --to-zip 10001 --to-state NY --to-city Albany --to-street "1 Main St"

    # Validate a shipping document / write the built-in defaults
    shipping-engine --config ./config/shipping.json config validate
    shipping-engine config init --output ./config/shipping.json

Environment:
    LOG_LEVEL             - logging level (default INFO)
    SHIPPING_CONFIG_PATH  - shipping document (default ./config/shipping.json)
    EASYPOST_API_KEY      - EasyPost key; unset means mock rates
    DATABASE_URL          - used with --from-db
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from shipping_engine.core.config import settings
from shipping_engine.core.exceptions import ShippingEngineError
from shipping_engine.models.packing import ItemCounts
from shipping_engine.models.rates import AddressInput
from shipping_engine.modules.shipping import Packer, get_rate_source
from shipping_engine.schemas.shipping_config import (
    ShippingConfig,
    create_default_config,
    load_shipping_config,
    save_shipping_config,
)
from shipping_engine.services.shipping_service import ShippingService

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================


async def _load_from_db() -> ShippingConfig:
    from shipping_engine.core.database import create_engine, create_session_factory
    from shipping_engine.services.config_loader import load_shipping_config_from_db

    if not settings.DATABASE_URL:
        raise ShippingEngineError("--from-db requires DATABASE_URL", code="DATABASE_NOT_CONFIGURED")

    engine = create_engine(settings.DATABASE_URL)
    try:
        async with create_session_factory(engine)() as db:
            return await load_shipping_config_from_db(db)
    finally:
        await engine.dispose()


def resolve_config(args) -> ShippingConfig:
    """--from-db, then --config, then SHIPPING_CONFIG_PATH, then built-in defaults."""
    if getattr(args, "from_db", False):
        return asyncio.run(_load_from_db())

    if args.config:
        return load_shipping_config(args.config)

    default_path = Path(settings.SHIPPING_CONFIG_PATH)
    if default_path.exists():
        return load_shipping_config(default_path)

    logger.warning(f"{default_path} not found, using built-in shipping config")
    return create_default_config()


def item_counts_from_args(args) -> ItemCounts:
    return ItemCounts(small=args.small, medium=args.medium, large=args.large, xlarge=args.xlarge)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


# =============================================================================
# COMMANDS
# =============================================================================


def cmd_pack(args) -> int:
    """Pack an order and print the solution."""
    packer = Packer(resolve_config(args))
    solution = packer.pack(item_counts_from_args(args))
    _print_json(solution.to_dict())
    return 0 if solution.valid else 2


async def _quote(config: ShippingConfig, counts: ItemCounts, ship_to: AddressInput):
    service = ShippingService(config, get_rate_source(settings))
    try:
        return await service.get_shipping_quote(counts, ship_to)
    finally:
        await service.close()


def cmd_quote(args) -> int:
    """Quote an order and print the top options."""
    config = resolve_config(args)
    ship_to = AddressInput(
        address_line1=args.to_street,
        city_locality=args.to_city,
        state_province=args.to_state,
        postal_code=args.to_zip,
        country_code=args.to_country,
        name=args.to_name,
    )

    response = asyncio.run(_quote(config, item_counts_from_args(args), ship_to))
    top_n = args.top or config.shipping.rate_preferences.present_top_n
    _print_json(response.to_dict(top_n=top_n))
    return 0 if response.ok else 2


def cmd_config_validate(args) -> int:
    config = resolve_config(args)
    print(f"OK: {len(config.boxes)} boxes, sort={config.shipping.rate_preferences.sort}")
    return 0


def cmd_config_init(args) -> int:
    output = Path(args.output)
    if output.exists() and not args.force:
        print(f"{output} exists (use --force to overwrite)", file=sys.stderr)
        return 1
    output.parent.mkdir(parents=True, exist_ok=True)
    save_shipping_config(create_default_config(), output)
    print(f"Wrote default shipping config to {output}")
    return 0


# =============================================================================
# MAIN
# =============================================================================


def _add_item_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--small", type=int, default=0, help="Small items")
    parser.add_argument("--medium", type=int, default=0, help="Medium items")
    parser.add_argument("--large", type=int, default=0, help="Large items")
    parser.add_argument("--xlarge", "--xl", type=int, default=0, help="XLarge items")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shipping-engine",
        description="Shipping box packer and rate quoting",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Shipping document (JSON)")
    parser.add_argument("--from-db", action="store_true", help="Load shipping config from DATABASE_URL")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    pack_parser = subparsers.add_parser("pack", help="Pack an order into boxes")
    _add_item_arguments(pack_parser)
    pack_parser.set_defaults(func=cmd_pack)

    quote_parser = subparsers.add_parser("quote", help="Quote an order")
    _add_item_arguments(quote_parser)
    quote_parser.add_argument("--to-street", required=True, help="Destination street address")
    quote_parser.add_argument("--to-city", required=True, help="Destination city")
    quote_parser.add_argument("--to-state", required=True, help="Destination state/province")
    quote_parser.add_argument("--to-zip", required=True, help="Destination postal code")
    quote_parser.add_argument("--to-country", default="US", help="Destination country code")
    quote_parser.add_argument("--to-name", help="Recipient name")
    quote_parser.add_argument("--top", type=int, default=0, help="Options to show (default: present_top_n)")
    quote_parser.set_defaults(func=cmd_quote)

    config_parser = subparsers.add_parser("config", help="Shipping document commands")
    config_sub = config_parser.add_subparsers(dest="config_cmd")

    config_validate = config_sub.add_parser("validate", help="Validate the shipping document")
    config_validate.set_defaults(func=cmd_config_validate)

    config_init = config_sub.add_parser("init", help="Write the built-in shipping document")
    config_init.add_argument("--output", default=settings.SHIPPING_CONFIG_PATH, help="Destination file")
    config_init.add_argument("--force", action="store_true", help="Overwrite an existing file")
    config_init.set_defaults(func=cmd_config_init)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except ShippingEngineError as e:
        logger.error(f"{e.code}: {e.message}")
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
