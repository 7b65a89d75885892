"""
LDIF Compare command line tool

Compares two LDIF snapshots and writes the reports into an output directory:
- DN matching (default): change records in both directions, the changed
  records and the records unique to each file
- attribute matching (--match-attribute): change records in both directions,
  non-matched records, records lacking the attribute and optionally deletion
  records for the right file

The run summary is printed as JSON.

Usage:
    ldif-compare --left old.ldif --right new.ldif --output reports
    ldif-compare --left hr.ldif --right ad.ldif --match-attribute employeeNumber,employeeID --generate-delete
    ldif-compare --left a.ldif --right b.ldif --config compare.yaml --ignore-prefixes ds- --json-logs
"""

import argparse
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import List, Optional

from ldifcompare import __version__
from ldifcompare.config import MatchKeyPair, build_config
from ldifcompare.exceptions import ConfigurationError
from ldifcompare.monitoring.metrics import CompareMetrics
from ldifcompare.reconciliation.coordinator import CompareCoordinator
from ldifcompare.utils.correlation import CorrelationContext, setup_correlation_logging

logger = logging.getLogger(__name__)


class StructuredJSONFormatter(logging.Formatter):
    """JSON formatter with correlation ID support."""

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'correlation_id': getattr(record, 'correlation_id', 'N/A'),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
            'thread': record.threadName,
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def configure_logging(verbose: bool = False, json_logs: bool = False) -> logging.Handler:
    """
    Attach one handler to the package logger.

    JSON output is selected by json_logs or the JSON_LOGGING environment
    variable; otherwise a human-readable console format is used.

    Returns:
        The installed handler
    """
    handler = logging.StreamHandler(sys.stderr)
    if json_logs or os.getenv('JSON_LOGGING', 'false').lower() == 'true':
        handler.setFormatter(StructuredJSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '[%(asctime)s] %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
    setup_correlation_logging(handler)

    package_logger = logging.getLogger("ldifcompare")
    package_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    package_logger.addHandler(handler)
    return handler


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ldif-compare",
        description="Compare two LDIF files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument("--left", "-l", required=True, help="Left (base) LDIF file")
    parser.add_argument("--right", "-r", required=True, help="Right LDIF file")
    parser.add_argument("--output", "-o", default=".", help="Directory receiving the reports")
    parser.add_argument("--config", "-c", help="YAML configuration file")
    parser.add_argument("--ignore-attributes", nargs="+", help="Attribute names ignored when comparing")
    parser.add_argument("--ignore-prefixes", nargs="+", help="Attribute name prefixes ignored when comparing")
    parser.add_argument(
        "--match-attribute",
        help="Match records on an attribute instead of the DN: 'name' or 'leftName,rightName'"
    )
    parser.add_argument(
        "--generate-delete", action="store_true", default=None,
        help="Write deletion records for right records without a match (attribute matching only)"
    )
    parser.add_argument(
        "--skip-identical", action="store_true", default=None,
        help="Leave identical DN-matched records out of the change reports"
    )
    parser.add_argument(
        "--case-sensitive-values", action="store_true", default=None,
        help="Compare matching attribute values case-sensitively"
    )
    parser.add_argument("--workers", type=int, help="Worker threads (defaults to the CPU count)")
    parser.add_argument("--pushgateway", help="Prometheus Pushgateway receiving the run metrics")
    parser.add_argument("--json-logs", action="store_true", help="Log as JSON lines")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    handler = configure_logging(args.verbose, args.json_logs)

    try:
        return _run(args)
    finally:
        logging.getLogger("ldifcompare").removeHandler(handler)


def _run(args: argparse.Namespace) -> int:
    with CorrelationContext() as run_id:
        try:
            config = build_config(
                args.left,
                args.right,
                args.output,
                config_file=args.config,
                ignore_attributes=args.ignore_attributes,
                ignore_prefixes=args.ignore_prefixes,
                match_attributes=(
                    MatchKeyPair.parse(args.match_attribute) if args.match_attribute is not None else None
                ),
                generate_delete=args.generate_delete,
                skip_identical=args.skip_identical,
                case_sensitive_values=args.case_sensitive_values,
                workers=args.workers,
            )
            metrics = CompareMetrics()
            result = CompareCoordinator(config, metrics).run()
        except ConfigurationError as e:
            logger.error(f"Invalid configuration: {e}")
            return 1
        except Exception as e:
            logger.error(f"Error: {e}", exc_info=args.verbose)
            return 1

        if args.pushgateway:
            try:
                metrics.push(args.pushgateway, grouping_key={"run_id": run_id})
            except Exception:
                logger.warning("Run metrics were not pushed")

        print(json.dumps(result.to_dict(), indent=2))
        return 0 if result.status == "success" else 1


if __name__ == "__main__":
    sys.exit(main())
