"""
Education Dataset Generator
Writes a seeded synthetic dataset as one JSON document plus a CSV per table
"""

import argparse
import json
from pathlib import Path

import polars as pl

from src.core.records import TABLES, jsonable
from src.data.generators import DataGenerator

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "generated"


def main():
    parser = argparse.ArgumentParser(description="Generate a synthetic education dataset")
    parser.add_argument("--students", type=int, default=200)
    parser.add_argument("--teachers", type=int, default=10)
    parser.add_argument("--courses", type=int, default=12)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--output", type=Path, default=OUTPUT_DIR)
    args = parser.parse_args()

    print("=" * 60)
    print("🎓 Education Dataset Generator")
    print("=" * 60 + "\n")

    dataset = DataGenerator(seed=args.seed).generate(
        n_students=args.students,
        n_teachers=args.teachers,
        n_courses=args.courses,
    )

    args.output.mkdir(parents=True, exist_ok=True)
    document = jsonable(dataset.to_dict())
    (args.output / "dataset.json").write_text(json.dumps(document, indent=2))

    total = 0
    for name in TABLES:
        frame = dataset.frame(name)
        if name == "courses" and not frame.is_empty():
            frame = frame.with_columns(pl.col("student_ids").list.join(";"))
        frame.write_csv(args.output / f"{name}.csv")
        total += frame.height
        print(f"   📄 {name}.csv: {frame.height:,} rows")

    print("\n" + "=" * 60)
    print("✅ Dataset Generation Complete!")
    print("=" * 60)
    print(f"\n📁 Output: {args.output}")
    print(f"📊 Total: {total:,} rows")
    print(f"\nServe it with REPORTING_DATASET_PATH={args.output / 'dataset.json'}\n")


if __name__ == "__main__":
    main()
