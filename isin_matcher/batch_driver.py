# isin_matcher/batch_driver.py
from __future__ import annotations

import asyncio
import logging
import random
import time
from contextlib import AsyncExitStack
from typing import AsyncContextManager, Callable, Iterable, List, Optional, Protocol

from .match_evaluator import CandidateSource, resolve_record
from .models import InputRecord, MatchRecord, STATUS_ERROR, STATUS_MATCHED, summarize

log = logging.getLogger(__name__)

DEFAULT_CHECKPOINT_EVERY = 10


class SessionSource(CandidateSource, Protocol):
    def isolated_session(self) -> AsyncContextManager: ...


def jittered_seconds(base: float, ratio: float) -> float:
    if base <= 0 or ratio <= 0:
        return max(0.0, base)
    low = max(0.0, base * (1.0 - ratio))
    high = base * (1.0 + ratio)
    return random.uniform(low, high)


def _error_record(record: InputRecord, exc: BaseException) -> MatchRecord:
    result = MatchRecord.pending(record)
    result.status = STATUS_ERROR
    result.error = f"{type(exc).__name__}: {exc}"
    return result


class BatchDriver:
    """
    入力順に1社ずつ 検索 → 候補ページ → 照合 を行い、結果を同じ順で溜める。
    並列化はしない（サイト側の負荷/ボット検知を避けるため固定間隔で待つ）。
    """

    def __init__(
        self,
        source: SessionSource,
        *,
        delay_sec: float = 0.0,
        jitter_ratio: float = 0.0,
        candidate_delay_sec: float = 0.0,
        isolate_sessions: bool = True,
        checkpoint_every: int = DEFAULT_CHECKPOINT_EVERY,
        on_checkpoint: Optional[Callable[[List[MatchRecord]], object]] = None,
    ):
        self.source = source
        self.delay_sec = delay_sec
        self.jitter_ratio = jitter_ratio
        self.candidate_delay_sec = candidate_delay_sec
        self.isolate_sessions = isolate_sessions
        self.checkpoint_every = checkpoint_every
        self.on_checkpoint = on_checkpoint
        self.results: List[MatchRecord] = []

    async def _process(self, record: InputRecord) -> MatchRecord:
        if not self.isolate_sessions:
            return await resolve_record(record, self.source, self.candidate_delay_sec)

        result: Optional[MatchRecord] = None
        try:
            async with self.source.isolated_session():
                result = await resolve_record(record, self.source, self.candidate_delay_sec)
        except Exception as e:
            if result is None:
                log.error("[%s] session setup failed: %s", record.company_name, e, exc_info=True)
                return _error_record(record, e)
            log.warning("[%s] session teardown failed", record.company_name, exc_info=True)
        return result

    def _checkpoint(self):
        if not self.on_checkpoint or self.checkpoint_every <= 0:
            return
        if len(self.results) % self.checkpoint_every:
            return
        try:
            self.on_checkpoint(list(self.results))
        except Exception:
            log.error("[checkpoint] failed after %s companies", len(self.results), exc_info=True)

    async def run(self, records: Iterable[InputRecord], limit: Optional[int] = None) -> List[MatchRecord]:
        targets = list(records)
        if limit and limit > 0:
            targets = targets[:limit]
        total = len(targets)
        self.results = []
        log.info("Processing %s companies...", total)

        async with AsyncExitStack() as stack:
            if not self.isolate_sessions:
                await stack.enter_async_context(self.source.isolated_session())

            for idx, record in enumerate(targets, 1):
                started = time.monotonic()
                log.info(
                    "[%s/%s] Processing: %s (ISIN: %s)",
                    idx, total, record.company_name, record.expected_isin,
                )
                result = await self._process(record)
                if not result.is_final:
                    result = _error_record(record, RuntimeError(f"left in status {result.status!r}"))
                self.results.append(result)
                log.info(
                    "[%s/%s] %s: status=%s found=%s elapsed=%.1fs",
                    idx, total, record.company_name, result.status,
                    result.found_isin or "-", time.monotonic() - started,
                )
                self._checkpoint()

                if idx < total and self.delay_sec > 0:
                    await asyncio.sleep(jittered_seconds(self.delay_sec, self.jitter_ratio))

        return list(self.results)


def log_summary(results: Iterable[MatchRecord]) -> dict:
    rows = list(results)
    counts = summarize(rows)
    log.info("=== SUMMARY ===")
    log.info("Total processed: %s", counts["total_processed"])
    log.info("Matched: %s", counts["matched"])
    log.info("No match: %s", counts["no_match"])
    log.info("No results: %s", counts["no_results"])
    log.info("Errors: %s", counts["errors"])
    matches = [r for r in rows if r.status == STATUS_MATCHED]
    if matches:
        log.info("=== MATCHES ===")
        for r in matches:
            log.info("%s -> %s", r.company_name, r.matching_url)
    return counts
