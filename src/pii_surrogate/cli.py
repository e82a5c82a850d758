"""CLI interface for pii-surrogate.

Usage:
    # Redact plain text (stdin: text, stdout: JSON with text + entities)
    echo 'Contact John Doe at john.doe@example.com' | \
        python -m pii_surrogate.cli --types properNouns,emails redact-text

    # Redact an HTML document (stdin: HTML, stdout: HTML)
    python -m pii_surrogate.cli --seed 7 redact-html < page.html > page.fake.html

    # Show every candidate with its score breakdown
    echo 'Average Receipt Value' | python -m pii_surrogate.cli explain
"""

from __future__ import annotations
import argparse
import json
import logging
import sys
from dataclasses import replace

from .config import RedactorConfig, load_from_yaml
from .document import HtmlDocument, PlainTextDocument
from .errors import PiiSurrogateError
from .redactor import RedactionSession, Redactor

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Log to stderr so stdout stays machine-readable."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(fmt)
    root.addHandler(handler)


def _build_config(args: argparse.Namespace) -> RedactorConfig:
    config = load_from_yaml(args.config) if args.config else RedactorConfig()
    overrides: dict = {}
    if args.types:
        overrides["enabled_types"] = [t for t in args.types.split(",") if t]
    if args.threshold is not None:
        overrides["proper_noun_threshold"] = args.threshold
    if args.variance is not None:
        overrides["magnitude_variance"] = args.variance
    if args.mode:
        overrides["redaction_mode"] = args.mode
    if args.window is not None:
        overrides["nearby_pii_window"] = args.window
    if args.seed is not None:
        overrides["seed"] = args.seed
    return replace(config, **overrides)


def cmd_redact_text(args: argparse.Namespace, redactor: Redactor) -> None:
    """Redact PII from plain text on stdin."""
    redacted = redactor.redact_text(sys.stdin.read())
    output = {"text": redacted.text, **redacted.result.to_dict()}
    json.dump(output, sys.stdout, ensure_ascii=False)
    sys.stdout.write("\n")


def cmd_redact_html(args: argparse.Namespace, redactor: Redactor) -> None:
    """Redact PII from an HTML document on stdin."""
    session = RedactionSession(HtmlDocument(sys.stdin.read()))
    result = redactor.protect(session)
    sys.stdout.write(session.document.render())
    sys.stderr.write(
        f"applied {result.applied_count} of {result.detected_count}, "
        f"skipped {result.skipped_count}\n")


def cmd_explain(args: argparse.Namespace, redactor: Redactor) -> None:
    """Dump every candidate, including sub-threshold ones, as JSON."""
    raw = sys.stdin.read()
    doc = HtmlDocument(raw) if args.html else PlainTextDocument(raw)
    candidates = redactor.explain(doc)
    json.dump([c.to_dict() for c in candidates], sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="pii_surrogate",
        description="Replace PII with consistent, format-preserving fake values",
    )
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("--types", default="", help="Comma-separated enabled types (e.g. properNouns,emails)")
    parser.add_argument("--threshold", type=float, help="Proper-noun score threshold")
    parser.add_argument("--variance", type=int, help="Magnitude variance for money/quantities, 0-100")
    parser.add_argument("--mode", choices=("random", "blackout"), help="Redaction mode")
    parser.add_argument("--window", type=int, help="Nearby-PII window in characters, 10-100")
    parser.add_argument("--seed", type=int, help="Seed for reproducible output")
    parser.add_argument("--html", action="store_true", help="Treat stdin as HTML (explain)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("redact-text", help="Redact plain text (stdin)")
    sub.add_parser("redact-html", help="Redact an HTML document (stdin)")
    sub.add_parser("explain", help="List all candidates with scores (stdin)")

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        redactor = Redactor(_build_config(args))
    except PiiSurrogateError as e:
        sys.stderr.write(f"error: {e}\n")
        return 2

    cmds = {
        "redact-text": cmd_redact_text,
        "redact-html": cmd_redact_html,
        "explain": cmd_explain,
    }
    cmds[args.command](args, redactor)
    return 0


if __name__ == "__main__":
    sys.exit(main())
