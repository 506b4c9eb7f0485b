"""Locate fillable form fields in a PDF document.

AcroForm widget annotations are used when the document has any; otherwise
fields are inferred from text: checkbox glyphs, underscore blanks after a
known label, and colon-terminated labels.
"""

from __future__ import annotations

import argparse
import logging
import sys

from pdf_models import DocumentTooLargeError, ExtractionConfig, ExtractionResult
from pdf_source import extract_pdf


def _print_summary(result: ExtractionResult, verbose: bool) -> None:
    print("=" * 64)
    print("FORM FIELDS")
    print("=" * 64)
    source = "AcroForm widgets" if result.has_acro_form else "text patterns"
    print(f"Pages: {result.page_count}   Document type: {result.document_type}   Source: {source}\n")

    if not result.fields:
        print("No fillable fields found in the document.")
    for f in result.fields:
        r = f.rect
        group = f"  group={f.group}" if f.group else ""
        print(f"  p{f.page:<3} {f.kind.value:<10} {f.field_id}{group}")
        print(f"        at x={r.x:6.2f}% y={r.y:6.2f}%  {r.width:.2f}% x {r.height:.2f}%")
        if verbose and f.label:
            print(f"        label: {f.label!r}  required: {f.required}")

    if verbose:
        print("\nText lines:\n")
        for page, line in result.text_lines:
            print(f"  p{page:<3} #{line.index:<4} {line.text}")
    print()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Locate fillable form fields in a PDF document.",
    )
    parser.add_argument("pdf", help="Path to the PDF file")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full extraction result as JSON",
    )
    parser.add_argument(
        "--indent",
        type=int, default=2, metavar="N",
        help="JSON indentation (default: 2)",
    )
    parser.add_argument(
        "--line-tolerance",
        type=float, default=ExtractionConfig.line_tolerance, metavar="PT",
        help="Max vertical distance in PDF units for runs on one line (default: 5)",
    )
    parser.add_argument(
        "--max-pages",
        type=int, default=ExtractionConfig.max_pages, metavar="N",
        help="Refuse documents with more pages than this",
    )
    parser.add_argument(
        "--workers",
        type=int, default=1, metavar="N",
        help="Process pages on N threads",
    )
    parser.add_argument(
        "--no-default-signatures",
        action="store_true",
        help="Do not add signature fields to text-only documents that lack them",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log progress and list the clustered text lines",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config = ExtractionConfig(
        line_tolerance=args.line_tolerance,
        max_pages=args.max_pages,
        max_workers=args.workers,
        default_signatures=not args.no_default_signatures,
    )
    try:
        result = extract_pdf(args.pdf, config)
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except DocumentTooLargeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    if args.json:
        print(result.to_json(indent=args.indent))
    else:
        _print_summary(result, args.verbose)
    return 0


if __name__ == "__main__":
    sys.exit(main())
