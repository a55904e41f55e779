"""
Command line front-end for the traceability engine.

Usage:
    agritrace create-farmer --data '<json>' | --data-file <path>
    agritrace get-farmer --farmer-id <id>
    agritrace create-product --data '<json>' | --data-file <path>
    agritrace get-product --product-id <id>
    agritrace update-status --product-id <id> --status <STATUS> --actor <actor> [--latitude .. --longitude .. --address ..]
    agritrace add-step --product-id <id> --data '<json>' | --data-file <path>
    agritrace history --product-id <id>
    agritrace reference --product-id <id> [--base-url <url>] [--encoded]
    agritrace farmer-products --farmer-id <id>
    agritrace add-certificate --data '<json>' [--document <path> --mimetype <type>]
    agritrace get-certificate --certificate-id <id>

Every command prints the result envelope as JSON and exits 1 on failure.
"""

import argparse
import asyncio
import json
import mimetypes
import sys
from pathlib import Path
from typing import Any

from agritrace.config import Settings
from agritrace.core.errors import ValidationFailedError
from agritrace.engine import OperationResult, TraceabilityEngine, encode_reference, run_operation
from agritrace.observability.logger import get_logger, setup_logger
from agritrace.observability.metrics import start_metrics_server
from agritrace.utils.validation import ValidationError, validate_file_path

logger = get_logger(__name__)


def load_json_input(args) -> dict[str, Any]:
    """
    Read the JSON object given with --data or --data-file.

    Raises:
        ValidationFailedError: If the input is missing or not a JSON object
    """
    try:
        if getattr(args, "data_file", None):
            raw = Path(validate_file_path(args.data_file, "data_file")).read_text()
        elif getattr(args, "data", None):
            raw = args.data
        else:
            raise ValidationError("one of --data or --data-file is required")
        data = json.loads(raw)
    except (ValidationError, OSError, ValueError) as e:
        raise ValidationFailedError(f"Invalid command input: {e}", errors=[str(e)]) from e

    if not isinstance(data, dict):
        raise ValidationFailedError("Command input must be a JSON object", errors=["not an object"])
    return data


def location_from_args(args) -> dict[str, Any] | None:
    if args.latitude is None and args.longitude is None:
        return None
    return {"latitude": args.latitude, "longitude": args.longitude, "address": args.address or ""}


async def create_farmer_command(engine: TraceabilityEngine, args):
    return await engine.create_farmer(load_json_input(args))


async def get_farmer_command(engine: TraceabilityEngine, args):
    return await engine.get_farmer(args.farmer_id)


async def create_product_command(engine: TraceabilityEngine, args):
    return await engine.create_product(load_json_input(args))


async def get_product_command(engine: TraceabilityEngine, args):
    return await engine.get_product(args.product_id)


async def update_status_command(engine: TraceabilityEngine, args):
    return await engine.update_product_status(
        args.product_id, args.status, location_from_args(args), args.actor
    )


async def add_step_command(engine: TraceabilityEngine, args):
    return await engine.add_supply_chain_step(args.product_id, load_json_input(args))


async def history_command(engine: TraceabilityEngine, args):
    return await engine.get_product_history(args.product_id)


async def reference_command(engine: TraceabilityEngine, args):
    product = await engine.get_product(args.product_id)
    reference = engine.derive_traceability_reference(product, args.base_url)
    if args.encoded:
        return {"payload": encode_reference(reference)}
    return reference


async def farmer_products_command(engine: TraceabilityEngine, args):
    return await engine.query_products_by_farmer(args.farmer_id)


async def add_certificate_command(engine: TraceabilityEngine, args):
    data = load_json_input(args)
    if not args.document:
        return await engine.add_certificate(data)

    try:
        path = Path(validate_file_path(args.document, "document"))
        document = path.read_bytes()
    except (ValidationError, OSError) as e:
        raise ValidationFailedError(f"Cannot read document: {e}", errors=[str(e)]) from e
    mimetype = args.mimetype or mimetypes.guess_type(path.name)[0]
    return await engine.add_certificate(data, document=document, filename=path.name, mimetype=mimetype)


async def get_certificate_command(engine: TraceabilityEngine, args):
    return await engine.get_certificate(args.certificate_id)


COMMANDS = {
    "create-farmer": create_farmer_command,
    "get-farmer": get_farmer_command,
    "create-product": create_product_command,
    "get-product": get_product_command,
    "update-status": update_status_command,
    "add-step": add_step_command,
    "history": history_command,
    "reference": reference_command,
    "farmer-products": farmer_products_command,
    "add-certificate": add_certificate_command,
    "get-certificate": get_certificate_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agritrace",
        description="Agricultural supply-chain traceability",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--env-file",
        help="Optional .env file with LEDGER_*/CONTENT_* settings"
    )
    parser.add_argument(
        "--indent",
        type=int,
        default=2,
        help="JSON indentation of the output (default: 2)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def with_json_input(sub):
        group = sub.add_mutually_exclusive_group(required=True)
        group.add_argument("--data", help="Input as a JSON object")
        group.add_argument("--data-file", help="Path to a JSON file with the input")
        return sub

    with_json_input(subparsers.add_parser("create-farmer", help="Register a farmer"))

    get_farmer_parser = subparsers.add_parser("get-farmer", help="Show a farmer")
    get_farmer_parser.add_argument("--farmer-id", required=True, help="Farmer ID")

    with_json_input(subparsers.add_parser("create-product", help="Register a product"))

    get_product_parser = subparsers.add_parser("get-product", help="Show a product")
    get_product_parser.add_argument("--product-id", required=True, help="Product ID")

    status_parser = subparsers.add_parser("update-status", help="Move a product to its next status")
    status_parser.add_argument("--product-id", required=True, help="Product ID")
    status_parser.add_argument("--status", required=True, help="New status (e.g. HARVESTED)")
    status_parser.add_argument("--actor", required=True, help="Party performing the change")
    status_parser.add_argument("--latitude", type=float, help="Current latitude")
    status_parser.add_argument("--longitude", type=float, help="Current longitude")
    status_parser.add_argument("--address", help="Current address")

    step_parser = with_json_input(subparsers.add_parser("add-step", help="Append a supply chain step"))
    step_parser.add_argument("--product-id", required=True, help="Product ID")

    history_parser = subparsers.add_parser("history", help="Show a product's chronological history")
    history_parser.add_argument("--product-id", required=True, help="Product ID")

    reference_parser = subparsers.add_parser("reference", help="Derive a product's QR payload")
    reference_parser.add_argument("--product-id", required=True, help="Product ID")
    reference_parser.add_argument("--base-url", help="History base address (default: HISTORY_BASE_URL)")
    reference_parser.add_argument(
        "--encoded",
        action="store_true",
        help="Print the canonical string to encode instead of the structured reference"
    )

    farmer_products_parser = subparsers.add_parser("farmer-products", help="List a farmer's products")
    farmer_products_parser.add_argument("--farmer-id", required=True, help="Farmer ID")

    cert_parser = with_json_input(subparsers.add_parser("add-certificate", help="Record a certificate"))
    cert_parser.add_argument("--document", help="Path to the certificate document")
    cert_parser.add_argument("--mimetype", help="Document MIME type (guessed from the file name)")

    get_cert_parser = subparsers.add_parser("get-certificate", help="Show a certificate")
    get_cert_parser.add_argument("--certificate-id", required=True, help="Certificate ID")

    return parser


async def run_command(engine: TraceabilityEngine, args) -> OperationResult:
    """Execute the parsed command against ``engine`` and wrap the outcome."""
    handler = COMMANDS[args.command]
    return await run_operation(handler(engine, args))


async def _run_with_settings(settings: Settings, args) -> OperationResult:
    async with TraceabilityEngine.from_settings(settings) as engine:
        return await run_command(engine, args)


def main(argv: list[str] | None = None):
    """Main entry point for the traceability CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        settings = Settings.from_env(args.env_file)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)
    setup_logger("agritrace", level=settings.log_level, format_type=settings.log_format)
    if settings.metrics_port:
        start_metrics_server(settings.metrics_port)

    try:
        result = asyncio.run(_run_with_settings(settings, args))
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)

    print(result.model_dump_json(indent=args.indent))
    if not result.success:
        logger.warning(
            f"{args.command} failed: {result.error.kind}",
            extra={"command": args.command, "error_kind": result.error.kind},
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
