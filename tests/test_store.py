import json
import logging
from datetime import datetime, timezone

import pytest

from app.config import Settings, settings
from app.core.logging_config import setup_logging
from app.errors import StoreUnavailable
from app.schemas import LoyaltyProfile, ScanEvent
from app.store import JsonFileStore, MemoryStore, SqlStore, build_store

setup_logging()


def _profiles() -> list[LoyaltyProfile]:
    return [
        LoyaltyProfile(
            loyalty_id="11111111-1111-4111-8111-111111111111",
            employee_id="E100",
            chat_user_id="u1",
            points=130,
            scan_count=2,
            last_daily_reward_at=datetime(2026, 3, 9, 7, 30, 15, 123000, tzinfo=timezone.utc),
        ),
        LoyaltyProfile(
            loyalty_id="22222222-2222-4222-8222-222222222222",
            employee_id="E200",
            chat_user_id="u2",
            points=100,
            scan_count=0,
            last_daily_reward_at=None,
        ),
    ]


def _scans() -> list[ScanEvent]:
    return [
        ScanEvent(
            id="aaaaaaaa-aaaa-4aaa-8aaa-aaaaaaaaaaaa",
            loyalty_id="11111111-1111-4111-8111-111111111111",
            timestamp=datetime(2026, 3, 9, 8, 0, tzinfo=timezone.utc),
            scan_type="bot",
        ),
        ScanEvent(
            id="bbbbbbbb-bbbb-4bbb-8bbb-bbbbbbbbbbbb",
            loyalty_id="11111111-1111-4111-8111-111111111111",
            timestamp=datetime(2026, 3, 9, 9, 0, tzinfo=timezone.utc),
            scan_type="iphone",
        ),
    ]


def test_json_store_round_trip(tmp_path):
    store = JsonFileStore(tmp_path)
    store.save_profiles(_profiles())
    store.save_scans(_scans())

    reloaded = JsonFileStore(tmp_path)
    assert reloaded.load_profiles() == _profiles()
    assert reloaded.load_scans() == _scans()


def test_json_store_writes_camel_case_records(tmp_path):
    store = JsonFileStore(tmp_path)
    store.save_profiles(_profiles()[1:])

    rows = json.loads((tmp_path / "loyalty.json").read_text(encoding="utf-8"))
    assert rows == [
        {
            "loyaltyId": "22222222-2222-4222-8222-222222222222",
            "employeeId": "E200",
            "chatUserId": "u2",
            "points": 100,
            "scanCount": 0,
            "lastDailyRewardAt": None,
        }
    ]


def test_json_store_creates_missing_files(tmp_path):
    store = JsonFileStore(tmp_path / "data")

    assert store.load_profiles() == []
    assert store.load_scans() == []
    assert (tmp_path / "data" / "loyalty.json").read_text(encoding="utf-8") == "[]"


def test_json_store_leaves_no_temp_files(tmp_path):
    store = JsonFileStore(tmp_path)
    for _ in range(3):
        store.save_profiles(_profiles())

    assert sorted(p.name for p in tmp_path.iterdir()) == ["loyalty.json"]


def test_json_store_reads_legacy_bot_files(tmp_path):
    (tmp_path / "loyalty.json").write_text(
        json.dumps(
            [
                {
                    "loyaltyId": "33333333-3333-4333-8333-333333333333",
                    "employeeId": "E100",
                    "telegramId": "42",
                    "points": 120,
                    "scanCount": 1,
                    "lastDailyRewardAt": "2026-03-09T10:00:00.000Z",
                }
            ]
        ),
        encoding="utf-8",
    )

    [profile] = JsonFileStore(tmp_path).load_profiles()

    assert profile.chat_user_id == "42"
    assert profile.last_daily_reward_at == datetime(2026, 3, 9, 10, 0, tzinfo=timezone.utc)


def test_corrupt_file_on_cold_load_is_quarantined_and_logged(tmp_path, caplog):
    (tmp_path / "loyalty.json").write_text("{not json", encoding="utf-8")
    store = JsonFileStore(tmp_path)

    assert store.load_profiles() == []

    quarantined = list(tmp_path.glob("loyalty.json.corrupt-*"))
    assert len(quarantined) == 1
    assert quarantined[0].read_text(encoding="utf-8") == "{not json"
    assert (tmp_path / "loyalty.json").read_text(encoding="utf-8") == "[]"
    assert any("store_corrupt_file" in r.getMessage() for r in caplog.records)


def test_invalid_record_counts_as_corrupt(tmp_path):
    (tmp_path / "scans.json").write_text(json.dumps([{"id": "x"}]), encoding="utf-8")
    store = JsonFileStore(tmp_path)

    assert store.load_scans() == []
    assert len(list(tmp_path.glob("scans.json.corrupt-*"))) == 1


def test_corruption_after_successful_load_raises(tmp_path):
    store = JsonFileStore(tmp_path)
    store.save_profiles(_profiles())
    assert len(store.load_profiles()) == 2

    (tmp_path / "loyalty.json").write_text("[{", encoding="utf-8")

    with pytest.raises(StoreUnavailable):
        store.load_profiles()
    assert list(tmp_path.glob("loyalty.json.corrupt-*")) == []


def test_unwritable_directory_raises_store_unavailable(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = JsonFileStore(blocker / "data")

    with pytest.raises(StoreUnavailable):
        store.save_profiles(_profiles())


def test_memory_store_returns_copies():
    store = MemoryStore(profiles=_profiles())

    loaded = store.load_profiles()
    loaded[0].points = 0

    assert store.load_profiles()[0].points == 130


def test_sql_store_round_trip(tmp_path):
    store = SqlStore(f"sqlite:///{tmp_path / 'loyalty.db'}")
    store.save_profiles(_profiles())
    store.save_scans(_scans())

    reloaded = SqlStore(f"sqlite:///{tmp_path / 'loyalty.db'}")
    assert reloaded.load_profiles() == _profiles()
    assert reloaded.load_scans() == _scans()


def test_sql_store_updates_profiles_in_place(tmp_path):
    store = SqlStore(f"sqlite:///{tmp_path / 'loyalty.db'}")
    profiles = _profiles()
    store.save_profiles(profiles)

    profiles[1] = profiles[1].model_copy(update={"points": 150, "scan_count": 5})
    store.save_profiles(profiles)

    loaded = store.load_profiles()
    assert [p.points for p in loaded] == [130, 150]
    assert loaded[1].scan_count == 5


def test_sql_store_never_drops_scan_events(tmp_path):
    store = SqlStore(f"sqlite:///{tmp_path / 'loyalty.db'}")
    scans = _scans()
    store.save_scans(scans[:1])
    store.save_scans(scans)
    store.save_scans([])

    assert [s.id for s in store.load_scans()] == [s.id for s in scans]


def test_build_store_selects_backend(tmp_path):
    settings = Settings()
    settings.LEDGER_DATA_DIR = str(tmp_path)
    settings.LEDGER_STORE = "json"
    assert isinstance(build_store(settings), JsonFileStore)

    settings.LEDGER_STORE = "memory"
    assert isinstance(build_store(settings), MemoryStore)

    settings.LEDGER_STORE = "sql"
    settings.DATABASE_URL = f"sqlite:///{tmp_path / 'ledger.db'}"
    assert isinstance(build_store(settings), SqlStore)

    settings.LEDGER_STORE = "redis"
    with pytest.raises(ValueError):
        build_store(settings)


def test_logging_startup_event_names_store_backend(caplog):
    with caplog.at_level(logging.INFO, logger="loyalty"):
        setup_logging("info")

    events = [json.loads(r.getMessage()) for r in caplog.records if "logging_initialized" in r.getMessage()]
    assert events
    assert events[-1]["log_level"] == "INFO"
    assert events[-1]["store"] == settings.LEDGER_STORE
    assert events[-1]["data_dir"] == settings.LEDGER_DATA_DIR
