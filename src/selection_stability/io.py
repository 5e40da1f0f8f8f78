# src/selection_stability/io.py
from __future__ import annotations
import logging
from pathlib import Path
from typing import Iterable

import pandas as pd

logger = logging.getLogger(__name__)


def load_folder_as_df(folder: str | Path, pattern: str = "*.csv") -> pd.DataFrame:

    folder = Path(folder)
    files = sorted(folder.glob(pattern))
    if not files:
        raise FileNotFoundError(f"No CSV files matching '{pattern}' found in {folder}")

    # === Read and merge all CSV files ===
    dfs = []
    for f in files:
        df = pd.read_csv(f)
        df["__source__"] = f.name
        dfs.append(df)
    df = pd.concat(dfs, axis=0, ignore_index=True)

    # === Basic cleaning ===
    # 1. Remove completely empty rows
    df = df.dropna(how="all")

    # 2. Standardize column names to lowercase
    df.columns = [c.strip().lower() for c in df.columns]

    # 3. Convert everything but the source tag to numeric
    for c in df.columns:
        if c != "__source__":
            df[c] = pd.to_numeric(df[c], errors="coerce")

    # 4. Drop columns that are entirely non-numeric, then rows with NaN
    empty_cols = [c for c in df.columns if c != "__source__" and df[c].isna().all()]
    if empty_cols:
        logger.info("Dropped non-numeric columns: %s", empty_cols)
        df = df.drop(columns=empty_cols)

    num_cols = [c for c in df.columns if c != "__source__"]
    before = len(df)
    df = df.dropna(subset=num_cols)
    logger.info("Dropped %d rows with NaN in numeric columns (%d rows remain).",
                before - len(df), len(df))

    return df.reset_index(drop=True)


def select_design(df: pd.DataFrame, target: str, exclude: Iterable[str] = ()):
    """
    Split `df` into the numeric predictor frame and the response series.

    The target, the ``__source__`` tag and any column in `exclude` are left out.
    """
    if target not in df.columns:
        raise ValueError(f"target '{target}' not in dataframe columns.")

    skip = {target, "__source__", *exclude}
    X_cols = [
        c for c in df.columns
        if c not in skip and pd.api.types.is_numeric_dtype(df[c])
    ]
    if not X_cols:
        raise ValueError("No numeric predictor columns found after exclusions.")

    return df[X_cols], df[target]
