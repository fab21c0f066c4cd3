#!/usr/bin/env python3
"""
Bill-of-Quantities Pricer - CLI Entry Point

A LangGraph-based pipeline that reads a construction "Estado de Mediciones"
(PDF or image), extracts every line item and prices it against a catalog.

Usage:
    # Single document
    python main.py ./docs/mediciones.pdf ./output

    # With a custom price book and config
    python main.py ./docs/mediciones.pdf ./output --catalog ./references/catalog.csv --config ./config/pipeline.yaml

    # Large scanned document as a background job, then collect it
    python main.py ./docs/scan.pdf ./output --background
    python main.py ./docs/scan.pdf ./output --job-status msgbatch_0123
"""

import argparse
import logging
import mimetypes
import sys
from pathlib import Path
from datetime import datetime

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from version import __version__, APP_NAME
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

CLI_SUBSCRIBER = "cli"


def guess_mime_type(path: Path) -> str:
    mime_type, _ = mimetypes.guess_type(str(path))
    return mime_type or "application/pdf"


def print_result(result, output_path: Path, duration: float):
    summary = result.summary

    print("\n" + "=" * 60)
    print("  PROCESSING COMPLETE")
    print("=" * 60)
    if result.extraction_method:
        print(f"  Method:          {result.extraction_method}")
        print(f"  Pages:           {result.page_count}")
    print(f"  Project Type:    {result.project_type_guess}")
    print(f"  Items:           {summary.total_items}")
    print(f"  Matched:         {summary.matched_items}")
    print(f"  Estimated:       {summary.estimated_items}")
    print(f"  Subtotal:        {summary.subtotal:,.2f} EUR")
    print(f"  Overhead:        {summary.overhead_amount:,.2f} EUR")
    print(f"  Profit:          {summary.profit_amount:,.2f} EUR")
    print(f"  Tax:             {summary.tax_amount:,.2f} EUR")
    print(f"  Total:           {summary.total:,.2f} EUR")
    print(f"  Duration:        {duration:.1f} seconds")
    print("=" * 60)
    print(f"\n  Reports saved to: {output_path}\n")


def main():
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description=f"{APP_NAME} - Extract and price line items from construction bills of quantities",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s ./docs/mediciones.pdf ./output
  %(prog)s ./docs/mediciones.pdf ./output --catalog ./references/catalog.csv
  %(prog)s ./docs/scan.pdf ./output --background
  %(prog)s ./docs/scan.pdf ./output --job-status msgbatch_0123
        """
    )

    parser.add_argument(
        "input_path",
        help="PDF or image of the bill of quantities"
    )

    parser.add_argument(
        "output_path",
        help="Directory for output reports"
    )

    parser.add_argument(
        "--catalog", "-c",
        default=None,
        help="Path to the catalog CSV (default: the sample bundled with boq_tools)"
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Path to pipeline YAML config (default: ./config/pipeline.yaml if present)"
    )

    parser.add_argument(
        "--provider",
        choices=["anthropic", "openai"],
        default=None,
        help="Generation provider (overrides config)"
    )

    parser.add_argument(
        "--model",
        default=None,
        help="Model name (overrides config)"
    )

    parser.add_argument(
        "--no-verification",
        action="store_true",
        help="Skip model verification of catalog candidates (faster, lower confidence)"
    )

    parser.add_argument(
        "--background",
        action="store_true",
        help="Submit large scanned documents as a background batch job"
    )

    parser.add_argument(
        "--job-status",
        metavar="JOB_ID",
        default=None,
        help="Collect and price the result of a background job"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose/debug logging"
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args()

    # Set logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Resolve paths
    input_path = Path(args.input_path).resolve()
    output_path = Path(args.output_path).resolve()

    if not args.job_status and not input_path.exists():
        logger.error(f"Input path does not exist: {input_path}")
        return 1

    try:
        from boq_agent import build_services, run_pipeline, price_extracted_items
        from boq_tools.background_jobs import fetch_job_items, should_run_in_background, submit_extraction_job
        from boq_tools.config import load_config
        from boq_tools.errors import PipelineError
        from boq_tools.progress import LoggingProgressSink
        from boq_tools.report import write_csv_report, write_json_report

        config = load_config(args.config)
        if args.provider:
            config.provider.provider = args.provider
        if args.model:
            config.provider.model = args.model

        services = build_services(config, catalog_path=args.catalog, progress=LoggingProgressSink())
        stem = input_path.stem

        # Print banner
        print("\n" + "=" * 60)
        print(f"  {APP_NAME} {__version__}")
        print("=" * 60)
        print(f"  Input:    {input_path}")
        print(f"  Output:   {output_path}")
        print(f"  Provider: {services.client.PROVIDER_NAME}")
        print(f"  Verify:   {'Disabled' if args.no_verification else 'Enabled'}")
        print("=" * 60 + "\n")

        start_time = datetime.now()

        if args.job_status:
            items = fetch_job_items(services.client, args.job_status)
            if items is None:
                print(f"  Job {args.job_status} is still running. Try again later.\n")
                return 0
            result = price_extracted_items(
                items,
                services=services,
                subscriber_key=CLI_SUBSCRIBER,
                use_verification=not args.no_verification
            )
            result.metadata["job_id"] = args.job_status
        else:
            document = input_path.read_bytes()
            mime_type = guess_mime_type(input_path)

            if args.background:
                probe = services.extractor().probe(document, mime_type)
                if should_run_in_background(document, probe, mime_type, config.background):
                    job = submit_extraction_job(services.client, document, mime_type, input_path.name)
                    print(f"  Submitted background job: {job.job_id}")
                    print(f"  Estimated time: ~{job.estimated_minutes} minutes")
                    print(f"  Collect with: --job-status {job.job_id}\n")
                    return 0

            result = run_pipeline(
                document,
                mime_type=mime_type,
                subscriber_key=CLI_SUBSCRIBER,
                services=services,
                use_verification=not args.no_verification
            )

        write_json_report(result.to_dict(), output_path, stem)
        write_csv_report(result.items, output_path, stem)

        duration = (datetime.now() - start_time).total_seconds()
        print_result(result, output_path, duration)
        return 0

    except ImportError as e:
        logger.error(f"Missing dependency: {e}")
        logger.error("Run: pip install -e .")
        return 1
    except PipelineError as e:
        logger.error(f"Pipeline failed: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
