"""CLI wrapper for single-run experiments."""

from __future__ import annotations

import argparse

from wear_cv.single_run import run_from_config


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cross-validate a wear-rate model")
    parser.add_argument("config", help="Path to YAML config file")
    parser.add_argument("--output-dir", help="Directory for artifacts")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    artifacts = run_from_config(args.config, output_dir=args.output_dir)
    print(f"Wrote results to {artifacts.results_dir}")


if __name__ == "__main__":
    main()
