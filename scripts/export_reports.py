# export_reports.py
"""
Download CSV reports from a running service one month at a time, e.g. to
hand the finance committee a folder of monthly giving exports.

    python scripts/export_reports.py --church-id <uuid> --start 2024-01 --end 2024-12
"""
import argparse
import logging
import time
from datetime import date, timedelta
from pathlib import Path
from typing import Iterator, Optional, Tuple

import requests
from tqdm import tqdm

from parish_analytics.config import settings

REPORTS = {
    "giving":            "/api/reports/giving",
    "giving-by-service": "/api/reports/giving-by-service",
    "attendance":        "/api/reports/attendance-report",
}

# Gentle pacing; the service is usually the church's small box
REQUEST_SLEEP_SECS = 0.5
TIMEOUT_SECS = 60
MAX_RETRIES = 3
RETRY_BACKOFF = 1.5  # seconds, multiplied by attempt number

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
log = logging.getLogger("export_reports")


def parse_month(raw: str) -> date:
    """YYYY-MM -> first day of that month."""
    y, m = raw.split("-")[:2]
    return date(int(y), int(m), 1)


def month_end(first: date) -> date:
    nxt = date(first.year + (first.month == 12), first.month % 12 + 1, 1)
    return nxt - timedelta(days=1)


def month_ranges(first: date, last: date) -> Iterator[Tuple[date, date]]:
    """(first_day, last_day) for every month from `first` through `last`, inclusive."""
    cur = date(first.year, first.month, 1)
    stop = date(last.year, last.month, 1)
    while cur <= stop:
        end = month_end(cur)
        yield cur, end
        cur = end + timedelta(days=1)


def make_session(token: Optional[str], church_id: str) -> requests.Session:
    s = requests.Session()
    s.headers.update({"Accept": "text/csv", settings.CHURCH_HEADER: church_id})
    if token:
        s.headers["Authorization"] = f"Bearer {token}"
    return s


def fetch_csv(session: requests.Session, url: str, start: date, end: date, timeout: int) -> Optional[str]:
    """
    GET one month's CSV with a few retries. 4xx responses are not retried;
    the request itself is wrong and will not get better.
    """
    params = {"startDate": start.isoformat(), "endDate": end.isoformat(), "format": "csv"}
    for attempt in range(1, MAX_RETRIES + 1):
        t0 = time.perf_counter()
        try:
            resp = session.get(url, params=params, timeout=timeout)
        except requests.RequestException as e:
            log.warning("%s..%s attempt %s raised in %.2fs: %s", start, end, attempt, time.perf_counter() - t0, e)
        else:
            if resp.status_code == 200:
                return resp.text
            log.warning("%s..%s attempt %s: HTTP %s %s", start, end, attempt, resp.status_code, resp.text[:250])
            if 400 <= resp.status_code < 500:
                return None
        time.sleep(RETRY_BACKOFF * attempt)
    return None


def main():
    parser = argparse.ArgumentParser(description="Download monthly CSV reports.")
    parser.add_argument("--base-url", default=settings.API_BASE_URL, help="API base URL (default: %(default)s)")
    parser.add_argument("--church-id", required=True, help="Church to export")
    parser.add_argument("--report", choices=sorted(REPORTS), default="giving",
                        help="Which report to download (default: %(default)s)")
    parser.add_argument("--start", required=True, help="First month, YYYY-MM")
    parser.add_argument("--end", default=None, help="Last month, YYYY-MM (default: current month)")
    parser.add_argument("--out", default="exports", help="Output directory (default: %(default)s)")
    parser.add_argument("--token", default=settings.API_TOKEN, help="Session token (default: API_TOKEN)")
    parser.add_argument("--sleep", type=float, default=REQUEST_SLEEP_SECS,
                        help="Seconds to sleep between requests (default: %(default)s)")
    parser.add_argument("--timeout", type=int, default=TIMEOUT_SECS, help="HTTP timeout seconds")
    parser.add_argument("--dry-run", action="store_true", help="Print what would be requested; don't call API.")
    args = parser.parse_args()

    base_url = args.base_url.rstrip("/")
    url = f"{base_url}{REPORTS[args.report]}"
    first = parse_month(args.start)
    last = parse_month(args.end) if args.end else date.today()
    months = list(month_ranges(first, last))

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    session = make_session(args.token, args.church_id)

    log.info("Exporting %s for %s..%s (%s months) to %s", args.report, first, last, len(months), out_dir)
    ok = failed = 0
    for start, end in tqdm(months, desc=f"Exporting {args.report}", unit="month"):
        target = out_dir / f"{args.report}-{start:%Y-%m}.csv"
        if args.dry_run:
            tqdm.write(f"[DRY RUN] Would GET {url}?startDate={start}&endDate={end} -> {target}")
            continue

        body = fetch_csv(session, url, start, end, args.timeout)
        if body is None:
            failed += 1
            tqdm.write(f"FAILED {start:%Y-%m}")
        else:
            target.write_text(body, encoding="utf-8")
            ok += 1
        time.sleep(args.sleep)

    log.info("Export complete. months ok=%s failed=%s", ok, failed)


if __name__ == "__main__":
    main()
