#!/usr/bin/env python3
"""Generate seeded part recipes and write them as JSON."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from part_generator import GenerationError, generate
from part_generator.serialization import recipe_sha256, write_recipe_json

logger = logging.getLogger("generate_parts")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate deterministic CSG part recipes from a seed"
    )
    parser.add_argument("--seed", type=int, required=True, help="First seed")
    parser.add_argument(
        "--difficulty",
        required=True,
        help="Beginner, Intermediate or Expert (case-insensitive)",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=1,
        help="Number of consecutive seeds to generate",
    )
    parser.add_argument("--out", default="runs/parts", help="Output directory")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logs"
    )
    return parser


def _build_summary(rows: list[dict], difficulty: str, elapsed_s: float) -> str:
    lines = [
        f"# Parts ({difficulty})",
        "",
        f"- Recipes: {len(rows)}",
        f"- Duration: {elapsed_s:.2f}s",
        "",
        "| seed | name | features | dropped | depth | sha256 |",
        "|---|---|---|---|---|---|",
    ]
    for row in rows:
        lines.append(
            f"| {row['seed']} | {row['name']} | {row['features']} | "
            f"{row['dropped']} | {row['depth']} | `{row['sha256'][:12]}` |"
        )
    lines.append("")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if args.count < 1:
        parser.error("--count must be at least 1")

    out_dir = Path(args.out)
    started = time.perf_counter()
    rows = []
    difficulty = args.difficulty
    for seed in range(args.seed, args.seed + args.count):
        try:
            recipe = generate(seed, args.difficulty)
        except GenerationError as exc:
            logger.error("seed=%s: %s", seed, exc)
            return 2
        difficulty = recipe.difficulty.value
        path = write_recipe_json(out_dir / f"part_{seed}_{difficulty}.json", recipe)
        meta = recipe.metadata
        rows.append(
            {
                "seed": seed,
                "name": recipe.name,
                "features": meta["featureCount"],
                "dropped": meta["droppedFeatures"] + meta["safetyDroppedFeatures"],
                "depth": meta["csgDepth"],
                "sha256": recipe_sha256(recipe),
            }
        )
        print(f"Wrote {path}")

    elapsed = time.perf_counter() - started
    summary_path = out_dir / "summary.md"
    summary_path.write_text(_build_summary(rows, difficulty, elapsed), encoding="utf-8")
    print(f"Summary: {summary_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
