#!/usr/bin/env python3
"""
Consistency checker for exported MSU results.

Verifies that the YAML report agrees with the exported tables and that the
statistics satisfy their invariants (distributions sum to one, the average
key size matches the size distribution).

Usage:
    python scripts/check_consistency.py [results_dir]
"""

import sys
from pathlib import Path

import pandas as pd
import yaml

TOLERANCE = 1e-9


def main():
    out = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("results")

    if not out.exists():
        print(f"ERROR: {out}/ directory not found. Run the analysis first.")
        return 1

    report_path = out / "analysis_report.yaml"
    if not report_path.exists():
        print(f"ERROR: {report_path} not found.")
        return 1

    report = yaml.safe_load(report_path.read_text())
    results = report['results']

    sizes_path = out / "tables" / "msu_size_distribution.csv"
    attributes_path = out / "tables" / "msu_attributes.csv"
    for path in (sizes_path, attributes_path):
        if not path.exists():
            print(f"ERROR: {path} not found.")
            return 1

    sizes = pd.read_csv(sizes_path)
    attributes = pd.read_csv(attributes_path)

    print("=" * 60)
    print("CONSISTENCY CHECK")
    print("=" * 60)

    errors = []
    num_keys = results['num_keys']
    distribution = sizes['fraction']

    print(f"\n  MSUs: {num_keys}")
    print(f"  Sum of size distribution: {distribution.sum()}")
    print(f"  Sum of contributions:     {attributes['contribution'].sum()}")

    expected_sum = 1.0 if num_keys > 0 else 0.0
    if abs(distribution.sum() - expected_sum) > TOLERANCE:
        errors.append(f"size distribution sums to {distribution.sum()}, expected {expected_sum}")
    if abs(attributes['contribution'].sum() - expected_sum) > TOLERANCE:
        errors.append(f"contributions sum to {attributes['contribution'].sum()}, expected {expected_sum}")

    weighted = (sizes['key_size'] * distribution).sum()
    if abs(weighted - results['average_key_size']) > TOLERANCE:
        errors.append(f"average key size {results['average_key_size']} != weighted sizes {weighted}")
    else:
        print("  ✓ Average key size matches size distribution")

    reported = pd.Series(results['key_size_distribution'], dtype=float)
    if len(reported) != len(distribution) or (reported - distribution).abs().max() > TOLERANCE:
        errors.append("size distribution table differs from report")

    if num_keys == 0 and attributes['average_key_size'].notna().any():
        errors.append("column averages must be undefined when no MSUs were found")

    print("\n" + "=" * 60)

    if errors:
        print("ERRORS FOUND:")
        for e in errors:
            print(f"  - {e}")
        return 1
    else:
        print("All consistency checks passed.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
