import argparse
import json
import sys
from pathlib import Path

import requests

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.config import settings  # noqa: E402


def trigger_daily_rewards(base_url: str, timeout: int = 10) -> dict:
    r = requests.post(f"{base_url.rstrip('/')}/api/daily-rewards", timeout=timeout)
    r.raise_for_status()
    return r.json()


def main() -> int:
    parser = argparse.ArgumentParser(description="Apply today's daily loyalty bonus through the ledger API.")
    parser.add_argument("--base-url", default=settings.API_BASE_URL)
    parser.add_argument("--timeout", type=int, default=10)
    args = parser.parse_args()

    try:
        result = trigger_daily_rewards(args.base_url, timeout=args.timeout)
    except requests.RequestException as exc:
        print(json.dumps({"ok": False, "error": str(exc)}))
        return 1

    print(json.dumps({"ok": True, **result}))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
