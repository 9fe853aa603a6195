#!/usr/bin/env python3
"""
main.py - CLI for minimal sample unique (MSU) risk analysis.

Usage:
    python main.py --data records.csv --output-dir results/
"""

import argparse
import logging
import os
import sys
import time
from pathlib import Path
from datetime import datetime

import yaml

from msu_risk.data_handle import load_dataset
from msu_risk.analysis_runner import MSUAnalysisRunner
from msu_risk.controller import AnalysisInterruptedError
from msu_risk.visualization import create_report_figures


def setup_logging(log_level: str = "INFO", log_file: str = None) -> None:
    """Configure logging for the application."""
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def load_config(config_path: str) -> dict:
    """Load configuration from YAML file."""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}


def run_analysis(
    data_path: str,
    output_dir: str,
    identifiers: list = None,
    max_key_length: int = 3,
    sep: str = ",",
    make_figures: bool = True,
    show_progress: bool = True
) -> dict:
    """
    Run the complete MSU analysis pipeline.

    Args:
        data_path: Path to the microdata CSV file
        output_dir: Path for output files
        identifiers: Attributes to analyze (None = all)
        max_key_length: Largest key size to search for
        sep: CSV field separator
        make_figures: Whether to render report figures
        show_progress: Whether to show a progress bar

    Returns:
        Dict with the analysis report
    """
    start_time = time.time()
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(__name__)

    # Step 1: Load and encode data
    logger.info("Loading dataset...")
    handle = load_dataset(data_path, sep=sep)

    # Step 2: Search for MSUs
    logger.info("Searching minimal sample uniques...")
    runner = MSUAnalysisRunner(handle)
    model = runner.run(identifiers, max_key_length, show_progress=show_progress)

    # Step 3: Export tables
    tables_dir = output_dir / "tables"
    table_paths = runner.export_results(model, tables_dir)

    # Step 4: Figures
    figure_paths = {}
    if make_figures:
        logger.info("Generating report figures...")
        figure_paths = create_report_figures(model.statistics, str(output_dir / "figures"))

    elapsed_time = time.time() - start_time

    report = {
        'analysis_timestamp': datetime.now().isoformat(),
        'elapsed_time_seconds': elapsed_time,
        'data_path': str(data_path),
        'output_dir': str(output_dir),
        'n_records': handle.num_rows(),
        'requested_max_key_length': max_key_length,
        'results': model.statistics.to_dict(),
        'table_paths': table_paths,
        'figure_paths': figure_paths,
    }

    report_path = output_dir / "analysis_report.yaml"
    with open(report_path, 'w') as f:
        yaml.safe_dump(report, f, default_flow_style=False, sort_keys=False)

    logger.info(f"Analysis complete in {elapsed_time:.1f} seconds")
    logger.info(f"Results saved to: {output_dir}")

    print("\n" + "=" * 60)
    print("MSU ANALYSIS SUMMARY")
    print("=" * 60)
    print(f"Records:           {handle.num_rows():,}")
    print(model.statistics.format_summary())
    print(f"\nOutput directory: {output_dir}")
    print("=" * 60)

    return report


def main():
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="Minimal Sample Unique (MSU) re-identification risk analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze all attributes with keys of up to 3 attributes
  python main.py --data records.csv

  # Restrict to quasi-identifiers and search longer keys
  python main.py --data records.csv --identifiers age sex zip --max-key-length 4

  # Use a YAML configuration file
  python main.py --config config/analysis.yaml
        """
    )

    parser.add_argument(
        '--data',
        type=str,
        default=os.environ.get('MSU_DATA_PATH', './data/records.csv'),
        help='Path to the microdata CSV file'
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        default='results',
        help='Path for output files (default: results/)'
    )

    parser.add_argument(
        '--config',
        type=str,
        help='Path to YAML configuration file'
    )

    parser.add_argument(
        '--identifiers',
        type=str,
        nargs='+',
        default=None,
        help='Attributes to analyze (default: all columns)'
    )

    parser.add_argument(
        '--max-key-length',
        type=int,
        default=3,
        help='Largest attribute combination to search (default: 3)'
    )

    parser.add_argument(
        '--sep',
        type=str,
        default=',',
        help='CSV field separator (default: ,)'
    )

    parser.add_argument(
        '--no-figures',
        action='store_true',
        help='Skip rendering report figures'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Logging level (default: INFO)'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Path to log file (optional)'
    )

    args = parser.parse_args()

    # Load config if provided
    if args.config:
        config = load_config(args.config)
        # Override args with config values
        args.data = config.get('data', {}).get('path', args.data)
        args.sep = config.get('data', {}).get('sep', args.sep)
        args.identifiers = config.get('analysis', {}).get('identifiers', args.identifiers)
        args.max_key_length = config.get('analysis', {}).get('max_key_length', args.max_key_length)
        args.output_dir = config.get('output', {}).get('dir', args.output_dir)
        args.no_figures = not config.get('output', {}).get('figures', not args.no_figures)

    # Setup logging
    log_file = args.log_file or str(Path(args.output_dir) / 'analysis.log')
    setup_logging(args.log_level, log_file)

    if args.max_key_length < 1:
        parser.error("--max-key-length must be at least 1")

    try:
        run_analysis(
            data_path=args.data,
            output_dir=args.output_dir,
            identifiers=args.identifiers,
            max_key_length=args.max_key_length,
            sep=args.sep,
            make_figures=not args.no_figures
        )
        return 0
    except AnalysisInterruptedError:
        logging.warning("Analysis interrupted, no results written")
        return 2
    except Exception as e:
        logging.error(f"Analysis failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
