import logging
import os
from typing import Any, Dict, List, Sequence

import pandas as pd

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = (".xlsx", ".xlsm")


class InputError(RuntimeError):
    """Input file problem that must stop the run before any remote call."""


def _read_frame(path: str) -> pd.DataFrame:
    suffix = os.path.splitext(path)[1].lower()
    if suffix in EXCEL_SUFFIXES:
        return pd.read_excel(path, dtype=object, keep_default_na=False)
    if suffix == ".csv":
        return pd.read_csv(path, dtype=object, keep_default_na=False, encoding="utf-8-sig")
    raise InputError(f"Unsupported input file type '{suffix}': expected .csv or .xlsx")


def _clean(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, float) and pd.isna(value):
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def load_records(path: str, required_columns: Sequence[str]) -> List[Dict[str, Any]]:
    """Read the spreadsheet at ``path`` into a list of row dicts.

    Raises InputError when the file is missing or a required column is not
    in the header. Extra columns are kept but otherwise ignored.
    """
    if not os.path.isfile(path):
        raise InputError(f"Input file not found: {path}")

    df = _read_frame(path)
    df.columns = [str(c).strip() for c in df.columns]

    missing = [c for c in required_columns if c not in df.columns]
    if missing:
        raise InputError(f"Missing required column(s): {', '.join(missing)}")

    records = [{k: _clean(v) for k, v in row.items()} for row in df.to_dict(orient="records")]
    logger.info(f"Loaded {len(records)} record(s) from {path}")
    return records
