from __future__ import annotations

import csv
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .isin_extractor import is_valid_isin
from .models import InputRecord, MatchRecord, STATUS_MATCHED, summarize

log = logging.getLogger(__name__)

MATCHES_HEADER = ["Company Name", "ISIN Code", "GuruFocus URL"]


def _ensure_parent(path: str):
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)


def load_input_records(path: str) -> List[InputRecord]:
    """
    1行目はヘッダとして捨てる。社名/ISIN のどちらかが空の行は除外。
    読み込み失敗（ファイルなし等）は呼び出し側へそのまま投げる。
    """
    records: List[InputRecord] = []
    with open(path, newline="", encoding="utf-8-sig") as f:
        reader = csv.reader(f)
        next(reader, None)
        for row in reader:
            if len(row) < 2:
                continue
            name = (row[0] or "").strip()
            isin = (row[1] or "").strip()
            if not name or not isin:
                continue
            if not is_valid_isin(isin):
                log.warning("malformed ISIN for %s: %r (kept, will not match)", name, isin)
            records.append(InputRecord(company_name=name, expected_isin=isin))
    return records


def write_matches_csv(results: Iterable[MatchRecord], path: str) -> int:
    matches = [r for r in results if r.status == STATUS_MATCHED]
    _ensure_parent(path)
    with open(path, mode="w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(MATCHES_HEADER)
        for r in matches:
            writer.writerow([r.company_name, r.expected_isin, r.matching_url or ""])
    return len(matches)


def build_results_payload(results: Iterable[MatchRecord], timestamp: Optional[str] = None) -> Dict[str, Any]:
    rows = list(results)
    payload: Dict[str, Any] = {"timestamp": timestamp or datetime.now(timezone.utc).isoformat()}
    payload.update(summarize(rows))
    payload["results"] = [r.to_dict() for r in rows]
    return payload


def save_results_json(results: Iterable[MatchRecord], path: str) -> None:
    _ensure_parent(path)
    with open(path, mode="w", encoding="utf-8") as f:
        json.dump(build_results_payload(results), f, ensure_ascii=False, indent=2)


class CsvDataManager:
    """
    入力CSVの読み込みと、結果JSON / マッチCSV の書き出しをまとめる。
    書き出しはベストエフォート（失敗はログのみで処理は続行）。
    """

    def __init__(self, input_path: str, results_path: str, matches_path: str):
        self.input_path = input_path
        self.results_path = results_path
        self.matches_path = matches_path
        self.rows: List[InputRecord] = []

    def load_records(self) -> List[InputRecord]:
        self.rows = load_input_records(self.input_path)
        return list(self.rows)

    def save_matches(self, results: List[MatchRecord]) -> bool:
        try:
            count = write_matches_csv(results, self.matches_path)
        except OSError:
            log.error("failed to write matches CSV: %s", self.matches_path, exc_info=True)
            return False
        log.info("[checkpoint] %s matches after %s companies -> %s", count, len(results), self.matches_path)
        return True

    def save_results(self, results: List[MatchRecord]) -> bool:
        json_ok = True
        try:
            save_results_json(results, self.results_path)
            log.info("Results saved to %s", self.results_path)
        except (OSError, TypeError, ValueError):
            log.error("failed to write results JSON: %s", self.results_path, exc_info=True)
            json_ok = False
        # JSON が失敗してもマッチCSVは書く
        matches_ok = self.save_matches(results)
        return json_ok and matches_ok
