"""Write a synthetic wear-rate CSV for trying out a config."""

from __future__ import annotations

import argparse
from pathlib import Path

from wear_cv.data import make_synthetic_wear_data


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate synthetic wear data")
    parser.add_argument("output", help="CSV path to write")
    parser.add_argument("--groups", type=int, default=24)
    parser.add_argument("--rows-per-group", type=int, default=8)
    parser.add_argument("--noise-features", type=int, default=1)
    parser.add_argument("--seed", type=int, default=42)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    frame = make_synthetic_wear_data(
        args.groups,
        args.rows_per_group,
        seed=args.seed,
        noise_features=args.noise_features,
    )
    path = Path(args.output)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False)
    print(path)


if __name__ == "__main__":
    main()
