# -*- coding: utf-8 -*-
"""
hparams.py - Layered option overrides

``merge_hparams()`` applies, in order of increasing priority:
    defaults < json_overrides < explicit overrides
An explicit override of ``None`` means "not given" and leaves the lower
layer in place.
"""
from __future__ import annotations

import copy
import json
import os
from typing import Any, Dict, Iterable, Optional


def _parse_hparams_source(source: str) -> dict:
    """Read overrides from inline JSON, ``@path`` or a plain existing path.

    Empty input gives ``{}``. Unreadable files and malformed JSON raise
    ``ValueError``.
    """
    if not source:
        return {}
    path: Optional[str] = None
    if source.startswith("@"):
        path = source[1:]
    elif os.path.exists(source):
        path = source
    if path:
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise ValueError(f"Failed to load options from file '{path}': {exc}") from exc
    else:
        try:
            loaded = json.loads(source)
        except json.JSONDecodeError as exc:
            raise ValueError(
                f"Failed to parse options JSON string: {exc}\n  Input was: {source!r}"
            ) from exc
    if not isinstance(loaded, dict):
        raise ValueError(f"Options JSON must be an object, got {type(loaded).__name__}")
    return loaded


def merge_hparams(
    defaults: Dict[str, Any],
    json_overrides: Optional[Dict[str, Any] | str] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
    allowed: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    """Merge option layers with priority *defaults < json_overrides < cli_overrides*.

    Parameters
    ----------
    defaults : dict
    json_overrides : dict | str | None
        A parsed dict, or a string handled by :func:`_parse_hparams_source`.
    cli_overrides : dict | None
        Keys whose value is ``None`` are skipped.
    allowed : iterable of str, optional
        When given, any override key outside this set raises ``ValueError``.

    Returns
    -------
    dict
        A fresh deep copy; callers may mutate it.
    """
    effective = copy.deepcopy(defaults)
    if isinstance(json_overrides, str):
        json_overrides = _parse_hparams_source(json_overrides)
    layers = [json_overrides or {}, {k: v for k, v in (cli_overrides or {}).items() if v is not None}]

    if allowed is not None:
        allowed = set(allowed)
        unknown = sorted(k for layer in layers for k in layer if k not in allowed)
        if unknown:
            raise ValueError(f"Unknown option(s): {unknown}")

    for layer in layers:
        effective.update(layer)
    return effective
