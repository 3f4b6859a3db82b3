import importlib.util
import json
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]


def _load_script(name: str):
    spec = importlib.util.spec_from_file_location(f"scripts_{name}", ROOT / "scripts" / f"{name}.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _write(path: Path, rows):
    path.write_text(json.dumps(rows), encoding="utf-8")


def _profile(loyalty_id: str, chat_user_id: str, scan_count: int = 0) -> dict:
    return {
        "loyaltyId": loyalty_id,
        "employeeId": "E100",
        "chatUserId": chat_user_id,
        "points": 100 + 10 * scan_count,
        "scanCount": scan_count,
        "lastDailyRewardAt": None,
    }


def _scan(scan_id: str, loyalty_id: str) -> dict:
    return {"id": scan_id, "loyaltyId": loyalty_id, "timestamp": "2026-03-09T10:00:00Z", "scanType": "bot"}


def test_verify_store_clean(tmp_path):
    verify_store = _load_script("verify_store")
    _write(tmp_path / "loyalty.json", [_profile("L1", "u1", scan_count=1), _profile("L2", "u2")])
    _write(tmp_path / "scans.json", [_scan("S1", "L1")])

    report = verify_store.verify(tmp_path, "loyalty.json", "scans.json")

    assert report["ok"] is True
    assert report["profiles"] == 2
    assert report["scans"] == 1
    assert report["history_lagging"] == []


def test_verify_store_flags_violations(tmp_path):
    verify_store = _load_script("verify_store")
    _write(
        tmp_path / "loyalty.json",
        [_profile("L1", "u1", scan_count=2), _profile("L2", "u1")],
    )
    _write(tmp_path / "scans.json", [_scan("S1", "L1"), _scan("S2", "L9")])

    report = verify_store.verify(tmp_path, "loyalty.json", "scans.json")

    assert report["ok"] is False
    assert "duplicate chatUserId: u1" in report["problems"]
    assert "scan S2 references unknown loyaltyId L9" in report["problems"]
    assert report["history_lagging"] == ["L1"]


def test_verify_store_reports_unparseable_file(tmp_path):
    verify_store = _load_script("verify_store")
    (tmp_path / "loyalty.json").write_text("{", encoding="utf-8")
    _write(tmp_path / "scans.json", [])

    report = verify_store.verify(tmp_path, "loyalty.json", "scans.json")

    assert report["ok"] is False
    assert report["problems"][0].startswith("loyalty.json: invalid JSON")
