#!/usr/bin/env python3
"""
Fill a W-9 from a JSON record.

The record uses the widget's camelCase field names. Validation errors are
printed and nothing is written; placement warnings are printed and the PDF is
written anyway.

Exit codes: 0 written, 1 invalid record or failed fill, 2 unreadable
record or unknown layout.

Usage:
  python scripts/fill_w9.py --data record.json --template fw9.pdf --out filled.pdf
  python scripts/fill_w9.py --data record.json --template fw9.pdf --out filled.pdf \\
      --layout 2024-03-acroform --date-style iso
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional, Sequence

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from pydantic import ValidationError  # noqa: E402

from config.w9_layout_loader import DEFAULT_LAYOUT_VERSION, load_layout  # noqa: E402
from export.w9_errors import W9FormError  # noqa: E402
from export.w9_pdf_filler import DateStyle, W9PdfFiller  # noqa: E402
from models.w9_form import W9FormData  # noqa: E402
from services.logging_config import configure_logging  # noqa: E402
from validation.w9_validator import validate_form  # noqa: E402

RED = "\033[91m"
YELLOW = "\033[93m"
GREEN = "\033[92m"
END = "\033[0m"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fill an IRS Form W-9 from a JSON record")
    parser.add_argument("--data", required=True, help="JSON record (camelCase keys)")
    parser.add_argument("--template", required=True, help="Blank W-9 PDF path or URL")
    parser.add_argument("--out", help="Output path (default: suggested filename)")
    parser.add_argument("--layout", default=DEFAULT_LAYOUT_VERSION, help="Placement layout version")
    parser.add_argument("--date-style", choices=[s.value for s in DateStyle], default="us")
    parser.add_argument("--skip-validation", action="store_true", help="Fill without wizard checks")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level="DEBUG" if args.verbose else "WARNING")

    try:
        payload = json.loads(Path(args.data).read_text(encoding="utf-8"))
        data = W9FormData.model_validate(payload)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        print(f"{RED}Cannot read record:{END} {e}", file=sys.stderr)
        return 2

    if not args.skip_validation:
        errors = validate_form(data)
        if errors:
            print(f"{RED}Record has invalid fields:{END}", file=sys.stderr)
            for key, message in sorted(errors.items()):
                print(f"  {key}: {message}", file=sys.stderr)
            return 1

    try:
        layout = load_layout(args.layout)
    except (OSError, ValueError) as e:
        print(f"{RED}Cannot load layout:{END} {e}", file=sys.stderr)
        return 2

    filler = W9PdfFiller(layout, args.template, DateStyle(args.date_style))
    try:
        result = filler.fill(data)
    except W9FormError as e:
        print(f"{RED}{type(e).__name__}:{END} {e.message}", file=sys.stderr)
        return 1

    for warning in result.warnings:
        print(f"{YELLOW}WARN{END} {warning.code.value} {warning.field}: {warning.message}")

    out_path = Path(args.out) if args.out else Path(result.filename)
    out_path.write_bytes(result.pdf_bytes)
    print(f"{GREEN}OK{END} wrote {out_path} ({len(result.pdf_bytes)} bytes)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
