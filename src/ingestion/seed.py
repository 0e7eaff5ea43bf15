"""
Reference table seeding.
Writes the demonstration WHO and INTERGROWTH-21 curves to the CSV store
used by CsvReferenceProvider. Curves already present are left untouched.

Run: python -m src.ingestion.seed [directory]
"""
import sys
from pathlib import Path
from typing import Dict, List, Tuple

import pandas as pd

from config.settings import REFERENCE_DIR, WHO_TABLE, INTERGROWTH_TABLE
from src.ingestion.providers import CSV_COLUMNS
from src.models.data_structures import Measure, ReferenceDataPoint, Sex
from src.models.reference_data import DEMO_CURVES


def curve_frame(measure: Measure, sex: Sex,
                points: List[ReferenceDataPoint]) -> pd.DataFrame:
    """Rows of one curve in the CSV layout (preterm measures un-prefixed)."""
    records = [
        {'sex': sex.value, 'measure': measure.base.value, **p.to_dict()}
        for p in points
    ]
    return pd.DataFrame(records, columns=CSV_COLUMNS)


def _seed_table(path: Path, curves: Dict[Tuple[Measure, Sex], List[ReferenceDataPoint]],
                label: str) -> int:
    existing = pd.read_csv(path) if path.exists() else pd.DataFrame(columns=CSV_COLUMNS)
    present = set(zip(existing['sex'], existing['measure']))

    frames = [existing]
    inserted = 0
    for (measure, sex), points in curves.items():
        print(f"  Processando {label}: {measure.base.value} ({sex.value})...")
        if (sex.value, measure.base.value) in present:
            print(f"  Dados {label} para {measure.base.value} ({sex.value}) já existem. Pulando.")
            continue
        frames.append(curve_frame(measure, sex, points))
        inserted += len(points)
        print(f"  ✓ {len(points)} registros {label} inseridos para "
              f"{measure.base.value} ({sex.value})")

    if inserted:
        combined = pd.concat([f for f in frames if len(f) > 0], ignore_index=True)
        combined = combined.sort_values(['sex', 'measure', 'age_days'])
        combined.to_csv(path, index=False)
    return inserted


def seed_reference_tables(directory: Path = REFERENCE_DIR,
                          curves: Dict[Tuple[Measure, Sex], List[ReferenceDataPoint]] = None
                          ) -> Dict[str, int]:
    """Seed both tables; returns rows inserted per table."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    curves = DEMO_CURVES if curves is None else curves

    who = {k: v for k, v in curves.items() if not k[0].is_preterm}
    intergrowth = {k: v for k, v in curves.items() if k[0].is_preterm}

    print("=" * 60)
    print("Reference table seeding")
    print("=" * 60)

    print("\n1. WHO curves...")
    n_who = _seed_table(directory / f"{WHO_TABLE}.csv", who, "OMS")

    print("\n2. INTERGROWTH-21 curves...")
    n_ig = _seed_table(directory / f"{INTERGROWTH_TABLE}.csv", intergrowth, "INTERGROWTH")

    print(f"\n3. Done: {n_who} WHO rows, {n_ig} INTERGROWTH rows written to {directory}")
    return {WHO_TABLE: n_who, INTERGROWTH_TABLE: n_ig}


if __name__ == "__main__":
    seed_reference_tables(Path(sys.argv[1]) if len(sys.argv) > 1 else REFERENCE_DIR)
