"""
Command-line entry point — wires dependencies and checks one certificate.

Composition root: loads settings, builds the key store adapter and hands
both to the pipeline. This is the only place (besides asgi.py) where
concrete adapters are created.

    dcc-verify 'HC1:NCFOXN%TS3DH3ZSUZK+.V0ETD%65NL-AH...' --keys keys.json
    zbarimg --raw qr.png | dcc-verify --json

Exit status:
  0  signature verified and certificate valid
  1  decoded, but any other verdict
  2  the text could not be decoded
  3  configuration error (settings or key file)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import TextIO

import structlog
from railway import LoggingExecutionContext
from railway.result import Result

from dcc_verifier import __version__
from dcc_verifier.adapters.key_store import InMemoryKeyStore
from dcc_verifier.config import VerifierSettings
from dcc_verifier.domain.display import certificate_title, report_to_dict, summarize
from dcc_verifier.domain.models import ValidityVerdict, VerificationReport
from dcc_verifier.pipeline import inspect_certificate

EXIT_VALID = 0
EXIT_NOT_VALID = 1
EXIT_DECODE_FAILURE = 2
EXIT_CONFIG_ERROR = 3


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for human-readable console logging.

    Log lines go to stderr so the CLI's stdout stays machine-readable.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        # module-level loggers must follow a later reconfiguration
        cache_logger_on_first_use=False,
    )


def load_key_store(path: Path | None) -> Result[InMemoryKeyStore]:
    """
    Key store from a local file.

    Without a file the store is empty: certificates still decode, but none
    can verify.
    """
    if path is None:
        structlog.get_logger().warning("keys.none_configured")
        return Result.success(InMemoryKeyStore({}))
    return InMemoryKeyStore.from_file(path)


def _instant(text: str) -> datetime:
    try:
        value = datetime.fromisoformat(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not an ISO 8601 date-time: {text!r}") from e
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dcc-verify",
        description="Decode and verify a Digital COVID Certificate QR payload.",
    )
    parser.add_argument(
        "qr_text",
        nargs="?",
        help="scanned QR text (HC1:...); read from stdin when omitted",
    )
    parser.add_argument("--keys", type=Path, help="trusted key file (overrides DCC_KEYS__PATH)")
    parser.add_argument("--now", type=_instant, help="evaluate at this ISO 8601 instant")
    parser.add_argument("--json", action="store_true", help="print the report as JSON")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def render_text(report: VerificationReport) -> str:
    rows = summarize(report)
    width = max(len(label) for label, _ in rows)
    lines = [certificate_title(report.certificate), ""]
    lines += [f"{label.ljust(width)}  {value}" for label, value in rows]
    return "\n".join(lines)


def run(
    argv: Sequence[str] | None = None,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> int:
    """Parse arguments, check one certificate, print it; returns the exit status."""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    args = build_parser().parse_args(argv)

    try:
        settings = VerifierSettings()
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        return EXIT_CONFIG_ERROR

    configure_structlog(settings.log_level)
    log = structlog.get_logger()

    key_store_result = load_key_store(args.keys or settings.keys.path)
    if key_store_result.is_failure():
        print(f"FATAL: {key_store_result.error().message}", file=sys.stderr)  # noqa: T201
        return EXIT_CONFIG_ERROR
    key_store = key_store_result.value()

    raw_text = args.qr_text if args.qr_text is not None else stdin.read()
    raw_text = raw_text.strip()

    result = LoggingExecutionContext(operation="inspect_certificate").execute(
        lambda: inspect_certificate(
            raw_text,
            key_store,
            now=args.now,
            scheme_prefix=settings.scheme_prefix,
            grace=settings.grace_period,
        )
    )

    if result.is_failure():
        failure = result.error()
        kind = type(failure.exception).__name__ if failure.exception else failure.code.value
        log.warning("cli.decode_failed", kind=kind)
        print(f"error: {kind}: {failure.message}", file=sys.stderr)  # noqa: T201
        return EXIT_DECODE_FAILURE

    report = result.value()
    if args.json:
        stdout.write(json.dumps(report_to_dict(report), indent=2, ensure_ascii=False) + "\n")
    else:
        stdout.write(render_text(report) + "\n")
    return EXIT_VALID if report.verdict is ValidityVerdict.VALID else EXIT_NOT_VALID


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
