from __future__ import annotations

import re
import unicodedata
from typing import Any

_SPACE_RE = re.compile(r"\s+")


def norm_space(value: Any) -> str:
    """
    Collapse runs of whitespace (incl. NBSP / full-width space) into one space.
    """
    text = unicodedata.normalize("NFKC", str(value or ""))
    text = text.replace("　", " ").replace("\xa0", " ")
    return _SPACE_RE.sub(" ", text).strip()


def norm_heading(value: Any) -> str:
    """
    Normalize a heading/label for case-insensitive comparison.
    - NFKC
    - lowercase
    - compress whitespaces
    """
    return norm_space(value).lower()
