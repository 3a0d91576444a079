#!/usr/bin/env python3
"""
Inspect and update signature positions in the catalogue file.

This script allows you to:
- List every signature position currently in effect
- Show the position a template key, PDF file name or form id resolves to
- Update (or add) a position and verify it was written
- Compare the direct file read with the fresh-read fallback path

Usage:
    cd backend

    # List positions
    python scripts/manage_signature_positions.py list

    # Show one position (key, PDF file name or form id)
    python scripts/manage_signature_positions.py get ABSACertificate.pdf

    # Update a position (opacity defaults to 0.7)
    python scripts/manage_signature_positions.py set clearance-certificate-form --x 110 --y 190 --width 200 --height 60

    # Resolve the key from the uploaded PDF name instead
    python scripts/manage_signature_positions.py set --pdf-name ML.pdf --x 320 --y 740 --width 200 --height 60

    # Verify what PDF generation will use
    python scripts/manage_signature_positions.py verify absa-form

    # Use a different catalogue file
    python scripts/manage_signature_positions.py --file /path/to/signature_positions.conf list
"""

import sys
import json
import argparse
import logging
from pathlib import Path
from typing import List, Optional

# Add parent directory to path to import position_store
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from position_store.config import settings
from position_store.schemas.error import ErrorResponse
from position_store.schemas.signature_position import PositionRecord
from position_store.services.position_storage import get_default_storage
from position_store.services.signature_position_service import SignaturePositionService
from position_store.utils.exceptions import PositionStoreError


def format_position(template_key: str, position: Optional[PositionRecord]) -> str:
    """Format a position for display."""
    if position is None:
        return f"{template_key}: (not found)"
    return (
        f"{template_key}: x={position.x} y={position.y} "
        f"width={position.width} height={position.height} opacity={position.opacity}"
    )


def cmd_list(service: SignaturePositionService, args: argparse.Namespace) -> int:
    positions = service.list_positions()
    if args.json:
        print(json.dumps({key: p.model_dump() for key, p in positions.items()}, indent=2))
        return 0 if positions else 1
    if not positions:
        print("No signature positions found.")
        return 1
    for key, position in positions.items():
        print(format_position(key, position))
    return 0


def cmd_get(service: SignaturePositionService, args: argparse.Namespace) -> int:
    key = service.resolve_template_key(args.key)
    position = service.get_position(args.key)
    if args.json:
        print(json.dumps({"template_key": key, "position": position.model_dump()}, indent=2))
        return 0
    print(format_position(key, position))
    return 0


def cmd_set(service: SignaturePositionService, args: argparse.Namespace) -> int:
    position = {
        "x": args.x,
        "y": args.y,
        "width": args.width,
        "height": args.height,
        "opacity": args.opacity,
    }
    result = service.update_position(
        args.key,
        position,
        pdf_name=args.pdf_name,
        form_id=args.form_id,
    )
    if args.json:
        print(result.model_dump_json(indent=2))
        return 0 if result.verified else 2
    print(f"Previous  {format_position(result.template_key, result.previous_position)}")
    print(f"New       {format_position(result.template_key, result.position)}")
    if result.verified:
        print("✓ Verified: position read back from file matches")
        return 0
    print(f"⚠ Verification mismatch on: {', '.join(result.mismatched_fields)}")
    print(f"Read back {format_position(result.template_key, result.verification_position)}")
    return 2


def cmd_verify(service: SignaturePositionService, args: argparse.Namespace) -> int:
    result = service.verify_position(args.key)
    if args.json:
        print(result.model_dump_json(indent=2))
        return 0 if result.matches else 2
    print(f"Direct file read  {format_position(result.template_key, result.direct_read)}")
    print(f"Fresh read        {format_position(result.template_key, result.fresh_read)}")
    print(f"Match: {result.matches}")
    return 0 if result.matches else 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage PDF signature positions")
    parser.add_argument("--file", help="Catalogue file (default: SIGNATURE_POSITIONS_PATH)")
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List all signature positions")

    get_parser = subparsers.add_parser("get", help="Show the position in effect for a template")
    get_parser.add_argument("key", help="Template key, PDF file name or form id")

    set_parser = subparsers.add_parser("set", help="Update or add a signature position")
    set_parser.add_argument("key", nargs="?", default=None, help="Template key, PDF file name or form id")
    set_parser.add_argument("--pdf-name", help="Uploaded PDF file name used to resolve the key")
    set_parser.add_argument("--form-id", help="Form identifier used to resolve the key")
    set_parser.add_argument("--x", type=int, required=True)
    set_parser.add_argument("--y", type=int, required=True)
    set_parser.add_argument("--width", type=int, required=True)
    set_parser.add_argument("--height", type=int, required=True)
    set_parser.add_argument("--opacity", type=float, default=None, help="0..1 (default 0.7)")

    verify_parser = subparsers.add_parser("verify", help="Compare direct file read with fresh read")
    verify_parser.add_argument("key", help="Template key")

    return parser


COMMANDS = {
    "list": cmd_list,
    "get": cmd_get,
    "set": cmd_set,
    "verify": cmd_verify,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    service = SignaturePositionService(storage=get_default_storage(args.file))
    try:
        return COMMANDS[args.command](service, args)
    except PositionStoreError as e:
        if args.json:
            print(ErrorResponse.from_exception(e).model_dump_json(indent=2))
        else:
            print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
