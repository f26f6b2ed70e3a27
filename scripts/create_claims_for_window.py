#!/usr/bin/env python
"""
Create the claims file (merkle root and proofs) for one reward window.

Usage:
    python scripts/create_claims_for_window.py -i window.json [-o proof-files]
"""
from __future__ import annotations

import argparse
import sys

from src.merkle_distributor.claims_file import create_claims_for_window


def main() -> int:
    parser = argparse.ArgumentParser(description="Create claims for a reward window")
    parser.add_argument("-i", "--input", required=True, help="Window JSON containing the recipients payout")
    parser.add_argument("-o", "--output-dir", default=None, help="Directory for the claims file")
    args = parser.parse_args()

    print("Running claims creation script")
    try:
        out_path = create_claims_for_window(args.input, args.output_dir)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"File successfully written to {out_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
