"""Locate the JSON envelope inside free-form assistant output."""

from __future__ import annotations

import re

_FENCED_JSON_RE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)


def extract_json_payload(output: str) -> str:
    """
    Return the JSON text embedded in ``output``.

    A fenced ``json`` block wins; otherwise the span from the first ``{`` to
    the last ``}`` is used, and failing that the stripped raw text.

    Parameters
    ----------
    output
        Raw assistant stdout.

    Returns
    -------
    str
        Candidate JSON document (not validated).
    """
    match = _FENCED_JSON_RE.search(output)
    if match:
        return match.group(1).strip()
    start = output.find("{")
    end = output.rfind("}")
    if start != -1 and end > start:
        return output[start : end + 1]
    return output.strip()


__all__ = ["extract_json_payload"]
