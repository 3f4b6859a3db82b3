import argparse
import json
import sys
from pathlib import Path

from pydantic import ValidationError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.config import settings  # noqa: E402
from app.schemas import LoyaltyProfile, ScanEvent  # noqa: E402


def _read_records(path: Path, model) -> tuple[list, list[str]]:
    if not path.exists():
        return [], [f"{path.name}: missing"]
    try:
        rows = json.loads(path.read_text(encoding="utf-8") or "[]")
    except ValueError as exc:
        return [], [f"{path.name}: invalid JSON ({exc})"]
    if not isinstance(rows, list):
        return [], [f"{path.name}: expected a JSON array"]

    records = []
    problems = []
    for i, row in enumerate(rows):
        try:
            records.append(model.model_validate(row))
        except ValidationError as exc:
            problems.append(f"{path.name}[{i}]: {exc.errors()[0].get('msg')}")
    return records, problems


def verify(data_dir: Path, loyalty_file: str, scans_file: str) -> dict:
    profiles, problems = _read_records(data_dir / loyalty_file, LoyaltyProfile)
    scans, scan_problems = _read_records(data_dir / scans_file, ScanEvent)
    problems.extend(scan_problems)

    seen_chat_users: set[str] = set()
    seen_loyalty_ids: set[str] = set()
    for p in profiles:
        if p.chat_user_id in seen_chat_users:
            problems.append(f"duplicate chatUserId: {p.chat_user_id}")
        if p.loyalty_id in seen_loyalty_ids:
            problems.append(f"duplicate loyaltyId: {p.loyalty_id}")
        seen_chat_users.add(p.chat_user_id)
        seen_loyalty_ids.add(p.loyalty_id)

    scans_per_profile: dict[str, int] = {}
    seen_scan_ids: set[str] = set()
    for s in scans:
        if s.id in seen_scan_ids:
            problems.append(f"duplicate scan id: {s.id}")
        seen_scan_ids.add(s.id)
        if s.loyalty_id not in seen_loyalty_ids:
            problems.append(f"scan {s.id} references unknown loyaltyId {s.loyalty_id}")
        scans_per_profile[s.loyalty_id] = scans_per_profile.get(s.loyalty_id, 0) + 1

    # A crash between the profile write and the history append leaves scanCount ahead of history.
    lagging = [
        p.loyalty_id for p in profiles if p.scan_count > scans_per_profile.get(p.loyalty_id, 0)
    ]
    for p in profiles:
        if p.scan_count < scans_per_profile.get(p.loyalty_id, 0):
            problems.append(f"profile {p.loyalty_id} has fewer scans than its history")

    return {
        "ok": not problems,
        "profiles": len(profiles),
        "scans": len(scans),
        "history_lagging": lagging,
        "problems": problems,
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Check the JSON loyalty store for invariant violations.")
    parser.add_argument("--data-dir", default=settings.LEDGER_DATA_DIR)
    parser.add_argument("--loyalty-file", default=settings.LOYALTY_FILE)
    parser.add_argument("--scans-file", default=settings.SCANS_FILE)
    args = parser.parse_args()

    report = verify(Path(args.data_dir), args.loyalty_file, args.scans_file)
    print(json.dumps(report, indent=2))
    return 0 if report["ok"] else 1


if __name__ == "__main__":
    raise SystemExit(main())
