from __future__ import annotations

from pathlib import Path
from typing import Any

import pandas as pd


def read_orders(path: str | Path) -> list[dict[str, Any]]:
    """Read an orders CSV into a list of ``{column: text}`` rows.

    Every cell is kept as text; cells missing from short rows come back as
    ``""`` so the record parser sees the same shape for every row.
    """
    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Data file not found at {csv_path}")

    df = pd.read_csv(
        csv_path,
        dtype=str,
        keep_default_na=False,
        index_col=False,
        skipinitialspace=True,
    )
    df.columns = [str(c).strip() for c in df.columns]
    df = df.fillna("")
    return df.to_dict(orient="records")
