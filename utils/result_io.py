# -*- coding: utf-8 -*-
"""
result_io.py - Writers for search results (frontier CSV + JSON summary)
"""
import json
from pathlib import Path

import numpy as np
import pandas as pd


def ensure_json_serializable(obj):
    """Convert numpy values to Python types; NaN and +/-Inf become ``None``."""
    if isinstance(obj, dict):
        return {str(k): ensure_json_serializable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [ensure_json_serializable(v) for v in obj]
    if isinstance(obj, np.ndarray):
        return ensure_json_serializable(obj.tolist())
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, (float, np.floating)):
        v = float(obj)
        return v if np.isfinite(v) else None
    return obj


def output_paths(output_file):
    """``(csv_path, json_path)`` derived from a user-given output file name."""
    base = Path(output_file)
    if base.suffix.lower() in (".csv", ".json"):
        base = base.with_suffix("")
    return base.with_suffix(".csv"), base.with_suffix(".json")


def write_result_json(path, payload: dict) -> Path:
    """Write ``payload`` as indented JSON, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(ensure_json_serializable(payload), f, indent=2, ensure_ascii=False)
    return path


def write_frontier_csv(path, frontier: pd.DataFrame) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frontier.to_csv(path, index=False)
    return path
