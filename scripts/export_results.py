"""Export every rating of a judging group as CSV.

Reads the store, submission directory and admin ids from JUDGING_* settings
and runs the export as the given admin.

Usage:
    python scripts/export_results.py my-group-slug --as admin-id
    python scripts/export_results.py my-group-slug --as admin-id -o scores.csv
"""

import argparse
import logging
import sys
from pathlib import Path

from judging.config import get_settings
from judging.service import build_service


def main():
    parser = argparse.ArgumentParser(description="Export a judging group's ratings as CSV")
    parser.add_argument("slug", help="Slug of the judging group")
    parser.add_argument("--as", dest="caller_id", required=True,
                        help="Admin id to run the export as")
    parser.add_argument("-o", "--output", help="Output path (default: stdout)")
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    service = build_service(settings)

    group = service.get_group_by_slug(args.slug)
    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w", encoding="utf-8", newline="") as stream:
            count = service.write_export(group.id, stream, caller_id=args.caller_id)
        print(f"Written {count} rows to {output_path}", file=sys.stderr)
    else:
        service.write_export(group.id, sys.stdout, caller_id=args.caller_id)


if __name__ == "__main__":
    main()
