import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from imagepipeline.airtable import AirtableStore
from imagepipeline.batch import process_csv, process_references, process_store
from imagepipeline.config import PipelineConfig
from imagepipeline.core import SubmissionResult, build_pipeline
from imagepipeline.errors import BatchError, ConfigError
from imagepipeline.export import export_zip, write_report
from imagepipeline.reconcile import ReconcileSchema


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Resize community submission images, publish them and write the URLs back."
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--report",
        type=Path,
        default=Path("outputs") / "report.json",
        help="Where to write the JSON results report.",
    )
    common.add_argument(
        "--export-zip",
        type=Path,
        default=None,
        help="Also download every published asset into this ZIP file.",
    )
    common.add_argument(
        "--schema",
        type=Path,
        default=None,
        help="JSON file overriding the record store field names used for write-back.",
    )
    common.add_argument(
        "--no-reconcile",
        action="store_true",
        help="Publish assets but do not update the record store.",
    )
    common.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of image slots processed concurrently (default: PIPELINE_MAX_WORKERS or 4).",
    )
    common.add_argument("--verbose", action="store_true", help="Enable debug logging.")

    sub = parser.add_subparsers(dest="source", required=True)

    csv_cmd = sub.add_parser("csv", parents=[common], help="Process a CSV export of the intake form.")
    csv_cmd.add_argument("--input", type=Path, required=True, help="Path to the CSV file.")

    ref_cmd = sub.add_parser(
        "references",
        parents=[common],
        help="Process a JSON list of submissions with image URLs.",
    )
    ref_cmd.add_argument("--input", type=Path, required=True, help="Path to the JSON file.")

    sub.add_parser("airtable", parents=[common], help="Read submissions from the configured Airtable table.")

    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> List[SubmissionResult]:
    config = PipelineConfig.from_env()
    if args.workers is not None:
        config.max_workers = args.workers
    elif not os.environ.get("PIPELINE_MAX_WORKERS"):
        config.max_workers = 4
    config.validate()

    schema = ReconcileSchema.load(args.schema) if args.schema else ReconcileSchema()
    pipeline = build_pipeline(config, schema=schema, reconcile=not args.no_reconcile)

    if args.source == "csv":
        return process_csv(pipeline, args.input)
    if args.source == "references":
        return process_references(pipeline, args.input)

    if not config.airtable_configured:
        raise ConfigError("Reading from Airtable requires AIRTABLE_API_KEY, AIRTABLE_BASE_ID and AIRTABLE_TABLE_NAME.")
    store = AirtableStore(
        api_key=config.airtable_api_key,
        base_id=config.airtable_base_id,
        table_name=config.airtable_table_name,
        timeout=(5.0, config.store_timeout),
    )
    return process_store(pipeline, store)


def main(argv: Optional[List[str]] = None) -> int:
    # Load environment variables from a local .env file if present
    # (e.g. CLOUDINARY_URL=cloudinary://..., AIRTABLE_API_KEY=...).
    load_dotenv()

    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        results = run(args)
    except (BatchError, ConfigError) as exc:
        print(f"❌ {exc}", file=sys.stderr)
        return 1

    report = write_report(results, args.report)
    summary = report["summary"]
    print(f"📁 Processed {summary['submissions']} submissions")
    print(f"🖼️  Published {summary['assets']} assets ({summary['slot_errors']} slot errors)")
    print(f"🔗 Reconciled {summary['reconciled']} records ({summary['reconcile_failures']} failed)")
    print(f"📝 Report written to {args.report}")

    if args.export_zip:
        count = export_zip(results, args.export_zip)
        print(f"📦 Exported {count} files to {args.export_zip}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
