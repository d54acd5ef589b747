#!/usr/bin/env python3
"""
Invoice Scan Core - Main Entry Point.

Command-line access to field extraction, record sealing and
verification, and the audit trail. Results are written to stdout as
JSON; logs go to stderr.

Usage:
    python main.py extract --image invoice.png
    python main.py extract --text recognized.txt --output result.json
    python main.py seal --input invoice.json
    python main.py verify --input sealed_invoice.json
    python main.py audit --target-type invoice --action update

Exit status:
    0  success
    1  recognition failure, tampered record or other processing error
    2  usage or input error
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

# Import project modules
from config import ConfigurationManager
from invoice_scan.utils.logger import LOGGER_NAMESPACE, setup_logger_from_config, get_logger
from invoice_scan.utils.helpers import ensure_directory, load_json_file
from invoice_scan.utils.exceptions import InputError, InvoiceScanError, RecognitionError

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    """
    Build the command-line parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="invoice-scan",
        description="Invoice Scan Core: field extraction and record integrity",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Extract fields from a scanned invoice:
        invoice-scan extract --image invoice.png

    Extract fields from every image in a directory:
        invoice-scan extract --image ./scans/ --output results.json

    Seal a record, then check it later:
        invoice-scan seal --input invoice.json --output sealed.json
        invoice-scan verify --input sealed.json
        """
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only log warnings and errors"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # extract
    extract_parser = subparsers.add_parser(
        "extract", help="Extract structured fields from an invoice"
    )
    source = extract_parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--image", "-i",
        type=str,
        help="Invoice image, or a directory of images"
    )
    source.add_argument(
        "--text", "-t",
        type=str,
        help="UTF-8 text file with already recognized invoice text"
    )
    extract_parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Write JSON result to this file instead of stdout"
    )

    # seal
    seal_parser = subparsers.add_parser(
        "seal", help="Attach dataHash and hashGeneratedAt to a JSON record"
    )
    seal_parser.add_argument("--input", "-i", type=str, required=True, help="JSON record")
    seal_parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Write sealed record to this file instead of stdout"
    )

    # verify
    verify_parser = subparsers.add_parser(
        "verify", help="Check a sealed JSON record for tampering"
    )
    verify_parser.add_argument("--input", "-i", type=str, required=True, help="Sealed JSON record")

    # audit
    audit_parser = subparsers.add_parser("audit", help="Query the audit trail")
    audit_parser.add_argument("--target-id", type=str, default=None)
    audit_parser.add_argument(
        "--target-type",
        choices=["invoice", "client", "payment", "settings"],
        default=None
    )
    audit_parser.add_argument(
        "--action",
        choices=["create", "update", "delete"],
        default=None
    )
    audit_parser.add_argument("--user-id", type=str, default=None)
    audit_parser.add_argument("--since", type=str, default=None, help="ISO-8601 lower bound")
    audit_parser.add_argument("--until", type=str, default=None, help="ISO-8601 upper bound")
    audit_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Show at most this many entries (newest first)"
    )

    return parser


def initialize_system(args: argparse.Namespace) -> ConfigurationManager:
    """
    Initialize configuration and logging.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Initialized configuration manager.
    """
    config = ConfigurationManager(args.config)

    setup_logger_from_config()

    level = None
    if args.debug:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING

    if level is not None:
        root_logger = logging.getLogger(LOGGER_NAMESPACE)
        root_logger.setLevel(level)
        for handler in root_logger.handlers:
            handler.setLevel(level)

    return config


def write_json(data: Any, output_path: Optional[str] = None) -> None:
    """Write ``data`` as JSON to a file or stdout."""
    text = json.dumps(data, ensure_ascii=False, indent=2)

    if output_path:
        path = Path(output_path)
        ensure_directory(path.parent)
        path.write_text(text + "\n", encoding="utf-8")
        get_logger(__name__).info(f"Output written: {path}")
    else:
        print(text)


def load_record(input_path: str) -> dict:
    """
    Load a JSON object from disk.

    Raises:
        InputError: If the file is unreadable or not a JSON object.
    """
    record = load_json_file(input_path)
    if not isinstance(record, dict):
        raise InputError(input_path, "expected a JSON object")
    return record


def command_extract(args: argparse.Namespace) -> int:
    """Run field extraction on an image (or directory of images) or a text file."""
    from invoice_scan.processor import ScanProcessor, collect_image_files
    from invoice_scan.extraction import FieldExtractor

    logger = get_logger(__name__)

    if args.text:
        path = Path(args.text)
        if not path.is_file():
            raise InputError(args.text, "file not found")
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise InputError(args.text, str(e))

        result = FieldExtractor().extract(text)
        write_json(result.to_dict(), args.output)
        return EXIT_OK

    image_files = collect_image_files(args.image)
    if not image_files:
        raise InputError(args.image, "no images to process")

    results = []
    with ScanProcessor() as processor:
        for image_path in image_files:
            logger.info(f"Processing: {image_path.name}")
            result = processor.process_image(image_path)
            results.append({'file': str(image_path), **result.to_dict()})

    if Path(args.image).is_file():
        write_json(results[0], args.output)
    else:
        write_json(results, args.output)

    logger.info(f"Extraction complete. Processed {len(results)} images.")
    return EXIT_OK


def command_seal(args: argparse.Namespace) -> int:
    """Seal a JSON record."""
    from invoice_scan.integrity import seal_record

    sealed = seal_record(load_record(args.input))
    write_json(sealed, args.output)
    return EXIT_OK


def command_verify(args: argparse.Namespace) -> int:
    """Verify a sealed JSON record; exit 1 when it fails verification."""
    from invoice_scan.integrity import verify_record

    status = verify_record(load_record(args.input))
    write_json(status.to_dict())

    if status.tampered:
        get_logger(__name__).warning(f"{args.input}: {status.message}")
        return EXIT_FAILURE
    return EXIT_OK


def command_audit(args: argparse.Namespace) -> int:
    """Print audit entries matching the given filters, newest first."""
    from invoice_scan.audit import AuditFilter, AuditLog
    from invoice_scan.storage import create_key_value_store

    try:
        audit_filter = AuditFilter(
            target_id=args.target_id,
            target_type=args.target_type,
            action=args.action,
            user_id=args.user_id,
            start_date=args.since,
            end_date=args.until,
        )
    except ValueError as e:
        raise InputError("audit filter", str(e))

    storage = create_key_value_store()
    try:
        entries = AuditLog(storage).query(audit_filter)
    finally:
        storage.close()

    if args.limit is not None:
        entries = entries[:max(args.limit, 0)]

    write_json([entry.to_dict() for entry in entries])
    return EXIT_OK


COMMANDS = {
    'extract': command_extract,
    'seal': command_seal,
    'verify': command_verify,
    'audit': command_audit,
}


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Args:
        argv: Argument list. Defaults to ``sys.argv[1:]``.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = build_parser()

    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else EXIT_USAGE

    try:
        initialize_system(args)
        return COMMANDS[args.command](args)

    except InputError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE

    except RecognitionError as e:
        print(f"Recognition failed: {e}", file=sys.stderr)
        return EXIT_FAILURE

    except InvoiceScanError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE

    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        return 130

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.debug:
            import traceback
            traceback.print_exc()
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
