# scripts/export_to_csv.py
import argparse
import csv
import json
from pathlib import Path
from typing import Iterable, Sequence

RESULTS_DEFAULT = Path("gurufocus_results.json")
OUT_DEFAULT = Path("data/gurufocus_export.csv")

ALL_FIELDS = ["company_name", "expected_isin", "found_isin", "matching_url", "status", "error"]
MATCHES_HEADER = ["Company Name", "ISIN Code", "GuruFocus URL"]


def load_results(path: Path) -> list[dict]:
    with path.open(encoding="utf-8") as f:
        payload = json.load(f)
    return list(payload.get("results") or [])


def filter_rows(rows: Iterable[dict], statuses: Sequence[str]) -> list[dict]:
    if not statuses:
        return list(rows)
    wanted = set(statuses)
    return [r for r in rows if r.get("status") in wanted]


def write_csv(rows: list[dict], out: Path, only_matched: bool = False) -> int:
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        if only_matched:
            writer.writerow(MATCHES_HEADER)
            for r in rows:
                writer.writerow([r.get("company_name", ""), r.get("expected_isin", ""), r.get("matching_url") or ""])
        else:
            writer.writerow(ALL_FIELDS)
            for r in rows:
                writer.writerow(["" if r.get(k) is None else r.get(k) for k in ALL_FIELDS])
    return len(rows)


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Export a gurufocus_results.json dump to CSV")
    ap.add_argument("--results", type=Path, default=RESULTS_DEFAULT, help="results JSON path")
    ap.add_argument("--out", type=Path, default=OUT_DEFAULT, help="Output CSV path")
    ap.add_argument("--only-matched", action="store_true",
                    help="matched のみを Company Name,ISIN Code,GuruFocus URL 形式で出力")
    ap.add_argument("--status", action="append", default=[],
                    help="出力する status（複数指定可）")
    args = ap.parse_args(argv)

    statuses = ["matched"] if args.only_matched else args.status
    rows = filter_rows(load_results(args.results), statuses)
    n = write_csv(rows, args.out, only_matched=args.only_matched)
    print(f"exported {n} rows -> {args.out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
