"""CLI command listing readable pages with word counts and previews."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from bookcondense.extraction.pdf_source import ExtractionFailed, inspect_document


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Inspect readable pages of a PDF")
    parser.add_argument("--path", required=True, help="Source PDF file")
    args = parser.parse_args(argv)

    source_path = Path(args.path)
    try:
        previews = inspect_document(source_path.read_bytes())
    except (OSError, ExtractionFailed) as exc:
        print(json.dumps({"path": str(source_path), "error": str(exc)}, ensure_ascii=True, indent=2))
        return 1

    payload = {
        "path": str(source_path),
        "pages": [preview.to_dict() for preview in previews],
    }
    print(json.dumps(payload, ensure_ascii=True, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
