# main.py
import argparse
import asyncio
import csv
import logging
import os
import sys

from dotenv import load_dotenv

from isin_matcher.batch_driver import BatchDriver, log_summary
from isin_matcher.csv_data_manager import CsvDataManager
from isin_matcher.gurufocus_scraper import GuruFocusScraper

# .env 読み込み
load_dotenv()

# --------------------------------------------------
# ロギング設定
# --------------------------------------------------
LOG_DIR = os.getenv("LOG_DIR", "logs")
os.makedirs(LOG_DIR, exist_ok=True)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[
        logging.FileHandler(os.path.join(LOG_DIR, "app.log"), encoding="utf-8"),
        logging.StreamHandler(),
    ],
)
log = logging.getLogger(__name__)

# --------------------------------------------------
# 実行オプション（.env）
# --------------------------------------------------
HEADLESS = os.getenv("HEADLESS", "true").lower() == "true"
INPUT_CSV_PATH = os.getenv("INPUT_CSV_PATH", "db_initial.csv")
RESULTS_JSON_PATH = os.getenv("RESULTS_JSON_PATH", "gurufocus_results.json")
MATCHES_CSV_PATH = os.getenv("MATCHES_CSV_PATH", "gurufocus_matches.csv")
SLEEP_BETWEEN_SEC = float(os.getenv("SLEEP_BETWEEN_SEC", "2.0"))
JITTER_RATIO = float(os.getenv("JITTER_RATIO", "0.0"))
CANDIDATE_DELAY_SEC = float(os.getenv("CANDIDATE_DELAY_SEC", "1.0"))
ISOLATE_SESSIONS = os.getenv("ISOLATE_SESSIONS", "true").lower() == "true"
CHECKPOINT_EVERY = max(0, int(os.getenv("CHECKPOINT_EVERY", "10")))

USAGE_EXAMPLES = """
Examples:
  python main.py 5
  python main.py 10 --visible
  python main.py 0            # Process all companies

Options:
  --visible    Show browser window (default: headless)
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="main.py",
        description="GuruFocus ISIN Matcher: search each company and verify the ISIN on its stock page",
    )
    parser.add_argument("count", nargs="?", type=int, help="number of companies to process (0 = all)")
    parser.add_argument("--visible", action="store_true", help="show the browser window")
    parser.add_argument("--input", default=INPUT_CSV_PATH, help="input CSV (company name, ISIN)")
    return parser


async def process(count: int, headless: bool, input_path: str) -> int:
    log.info(
        "=== GuruFocus ISIN Matcher === input=%s count=%s HEADLESS=%s SLEEP_BETWEEN_SEC=%s "
        "JITTER_RATIO=%.2f ISOLATE_SESSIONS=%s CHECKPOINT_EVERY=%s",
        input_path, count or "all", headless, SLEEP_BETWEEN_SEC,
        JITTER_RATIO, ISOLATE_SESSIONS, CHECKPOINT_EVERY,
    )
    manager = CsvDataManager(input_path, RESULTS_JSON_PATH, MATCHES_CSV_PATH)
    try:
        records = manager.load_records()
    except (OSError, csv.Error, UnicodeDecodeError) as e:
        log.error("failed to load input CSV %s: %s", input_path, e)
        return 1
    log.info("Loaded %s companies from %s", len(records), input_path)
    if not records:
        log.warning("No companies found in CSV file")
        return 0

    limit = count or None
    if limit and limit > len(records):
        log.warning("Requested %s companies, but only %s available", limit, len(records))
        limit = None

    scraper = GuruFocusScraper(headless=headless)
    driver = BatchDriver(
        scraper,
        delay_sec=SLEEP_BETWEEN_SEC,
        jitter_ratio=JITTER_RATIO,
        candidate_delay_sec=CANDIDATE_DELAY_SEC,
        isolate_sessions=ISOLATE_SESSIONS,
        checkpoint_every=CHECKPOINT_EVERY,
        on_checkpoint=manager.save_matches,
    )
    exit_code = 0
    try:
        await scraper.start()
        await driver.run(records, limit=limit)
    except Exception:
        log.exception("run aborted after %s companies", len(driver.results))
        exit_code = 1
    finally:
        try:
            await scraper.close()
        except Exception:
            log.warning("scraper.close() failed", exc_info=True)

    # 途中終了でも処理済みぶんは書き出す
    manager.save_results(driver.results)
    log_summary(driver.results)
    return exit_code


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.count is None or args.count < 0:
        parser.print_usage(sys.stderr)
        print(USAGE_EXAMPLES, file=sys.stderr)
        return 1
    headless = HEADLESS and not args.visible
    return asyncio.run(process(args.count, headless, args.input))


if __name__ == "__main__":
    raise SystemExit(main())
