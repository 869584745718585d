from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Iterable, Optional

STATUS_PENDING = "pending"
STATUS_MATCHED = "matched"
STATUS_NO_MATCH = "no_match"
STATUS_NO_RESULTS = "no_results"
STATUS_ERROR = "error"

TERMINAL_STATUSES = (STATUS_MATCHED, STATUS_NO_MATCH, STATUS_NO_RESULTS, STATUS_ERROR)


@dataclass(frozen=True)
class InputRecord:
    company_name: str
    expected_isin: str


@dataclass(frozen=True)
class Candidate:
    url: str
    display_text: str = ""


@dataclass
class MatchRecord:
    """
    1社ぶんの照合結果。
    status は処理開始時に pending、確定時に TERMINAL_STATUSES のいずれかになる。
    matching_url は status == matched のときだけ入る。
    """
    company_name: str
    expected_isin: str
    found_isin: Optional[str] = None
    matching_url: Optional[str] = None
    status: str = STATUS_PENDING
    error: Optional[str] = None

    @classmethod
    def pending(cls, record: InputRecord) -> "MatchRecord":
        return cls(company_name=record.company_name, expected_isin=record.expected_isin)

    @property
    def is_final(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def summarize(results: Iterable[MatchRecord]) -> dict[str, int]:
    rows = list(results)

    def count(status: str) -> int:
        return sum(1 for r in rows if r.status == status)

    return {
        "total_processed": len(rows),
        "matched": count(STATUS_MATCHED),
        "no_match": count(STATUS_NO_MATCH),
        "no_results": count(STATUS_NO_RESULTS),
        "errors": count(STATUS_ERROR),
    }
