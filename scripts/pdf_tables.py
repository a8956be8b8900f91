from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="PDF -> tables (JSON) from positioned text fragments",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--pdf", type=Path, default=None, help="Path to a local PDF file")
    source.add_argument("--url", default=None, help="http(s) URL of a PDF")
    parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Output JSON path (default: <pdf>.tables.json, required with --url unless --stdout)",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Overwrite the output file if it already exists",
    )
    parser.add_argument(
        "--stdout",
        action="store_true",
        help="Write JSON to stdout instead of a file",
    )
    parser.add_argument(
        "--allow-empty",
        action="store_true",
        help="Write raw rows even when no table is detected",
    )
    return parser.parse_args(argv)


def main(argv: list[str]) -> int:
    args = _parse_args(argv)

    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))

    if args.stdout and args.out is not None:
        print("ERROR: Cannot use --stdout with --out", file=sys.stderr)
        return 2

    pdf_path: Path | None = args.pdf
    if pdf_path is not None:
        if not pdf_path.exists():
            print(f"ERROR: PDF not found: {pdf_path}", file=sys.stderr)
            return 2
        if not pdf_path.is_file():
            print(f"ERROR: Not a file: {pdf_path}", file=sys.stderr)
            return 2

    out_path = args.out
    if out_path is None and pdf_path is not None:
        out_path = pdf_path.with_suffix(".tables.json")
    if not args.stdout:
        if out_path is None:
            print("ERROR: --out is required with --url (or use --stdout)", file=sys.stderr)
            return 2
        if out_path.exists() and not args.overwrite:
            print(
                f"ERROR: Output already exists: {out_path} (use --overwrite to replace)",
                file=sys.stderr,
            )
            return 2
        out_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        from tablereader.pipeline import ParseError, parse_pdf_bytes, parse_pdf_from_url
    except Exception as exc:  # noqa: BLE001
        print(f"ERROR: Failed to import app modules: {exc}", file=sys.stderr)
        return 1

    require_tables = not args.allow_empty
    try:
        if pdf_path is not None:
            pdf_bytes = pdf_path.read_bytes()
            result = parse_pdf_bytes(
                pdf_bytes,
                source=str(pdf_path),
                require_tables=require_tables,
            )
        else:
            result = parse_pdf_from_url(args.url, require_tables=require_tables)
    except OSError as exc:
        print(f"ERROR: Failed to read PDF: {exc}", file=sys.stderr)
        return 1
    except ParseError as exc:
        print(f"ERROR: {exc.type.value}: {exc.message}", file=sys.stderr)
        return 1

    output = json.dumps(result.to_dict(), ensure_ascii=False, indent=2) + "\n"
    if args.stdout:
        sys.stdout.write(output)
        return 0

    try:
        out_path.write_text(output, encoding="utf-8", newline="\n")
    except OSError as exc:
        print(f"ERROR: Failed to write output: {exc}", file=sys.stderr)
        return 1

    print(f"Wrote: {out_path}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
