# isin_matcher/match_evaluator.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol, Sequence

from .models import (
    Candidate,
    InputRecord,
    MatchRecord,
    STATUS_ERROR,
    STATUS_MATCHED,
    STATUS_NO_MATCH,
    STATUS_NO_RESULTS,
)

log = logging.getLogger(__name__)

ExtractFn = Callable[[Candidate], Awaitable[Optional[str]]]


class CandidateSource(Protocol):
    async def search_company(self, company_name: str) -> list[Candidate]: ...

    async def extract_isin(self, candidate: Candidate) -> Optional[str]: ...


@dataclass(frozen=True)
class MatchOutcome:
    status: str
    found_isin: Optional[str] = None
    matching_url: Optional[str] = None


async def evaluate_candidates(
    expected_isin: str,
    candidates: Sequence[Candidate],
    extract: ExtractFn,
    candidate_delay_sec: float = 0.0,
) -> MatchOutcome:
    """
    候補を順番に開き、期待 ISIN と完全一致した最初の候補で打ち切る。
    不一致の抽出値は診断用に保持し、最後の値を found_isin とする。
    """
    if not candidates:
        return MatchOutcome(status=STATUS_NO_RESULTS)

    last_found: Optional[str] = None
    for idx, candidate in enumerate(candidates):
        if idx and candidate_delay_sec > 0:
            await asyncio.sleep(candidate_delay_sec)
        found = await extract(candidate)
        if not found:
            continue
        last_found = found
        if found == expected_isin:
            log.info("[isin] MATCH %s -> %s", found, candidate.url)
            return MatchOutcome(status=STATUS_MATCHED, found_isin=found, matching_url=candidate.url)
        log.info("[isin] mismatch expected=%s found=%s url=%s", expected_isin, found, candidate.url)

    return MatchOutcome(status=STATUS_NO_MATCH, found_isin=last_found)


async def resolve_record(
    record: InputRecord,
    source: CandidateSource,
    candidate_delay_sec: float = 0.0,
) -> MatchRecord:
    result = MatchRecord.pending(record)
    try:
        candidates = await source.search_company(record.company_name)
        if not candidates:
            log.info("[search] no stock links for %s", record.company_name)
        outcome = await evaluate_candidates(
            record.expected_isin,
            candidates,
            source.extract_isin,
            candidate_delay_sec=candidate_delay_sec,
        )
        result.status = outcome.status
        result.found_isin = outcome.found_isin
        result.matching_url = outcome.matching_url
    except Exception as e:
        log.error("[%s] error: %s", record.company_name, e, exc_info=True)
        result.status = STATUS_ERROR
        result.error = f"{type(e).__name__}: {e}"
    return result
