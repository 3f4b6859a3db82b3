"""
Durable storage for the two ledger record sets: loyalty profiles and scan events.

Every backend implements the same four calls (``load_profiles``,
``save_profiles``, ``load_scans``, ``save_scans``) and always persists the whole
record set it is given. Mutual exclusion for read-modify-write sequences is the
ledger's job (see ``app.ledger``); stores only guarantee that a reader never
sees a half-written set.
"""

import contextlib
import json
import os
import tempfile
from pathlib import Path
from typing import Protocol

import structlog
from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings
from .db import Base, make_engine, make_session_factory
from .errors import StoreUnavailable
from .models import LoyaltyProfileRow, ScanEventRow
from .schemas import LoyaltyProfile, ScanEvent, as_utc, utc_now

logger = structlog.get_logger("loyalty.store")


class LedgerStore(Protocol):
    def load_profiles(self) -> list[LoyaltyProfile]: ...

    def save_profiles(self, profiles: list[LoyaltyProfile]) -> None: ...

    def load_scans(self) -> list[ScanEvent]: ...

    def save_scans(self, scans: list[ScanEvent]) -> None: ...


class JsonFileStore:
    """
    JSON array per record set, the same files the legacy bot wrote.

    Writes go to a temp file in the target directory and are moved over the
    target with ``os.replace``. An unparseable file found on the first load of
    a record set is moved aside to ``<name>.corrupt-<timestamp>`` and the set
    starts empty; once a set has loaded cleanly, a later parse failure raises
    ``StoreUnavailable``.
    """

    def __init__(
        self,
        data_dir: str | Path,
        loyalty_file: str = "loyalty.json",
        scans_file: str = "scans.json",
    ):
        self.data_dir = Path(data_dir)
        self.profiles_path = self.data_dir / loyalty_file
        self.scans_path = self.data_dir / scans_file
        self._loaded: set[Path] = set()

    def load_profiles(self) -> list[LoyaltyProfile]:
        return self._load(self.profiles_path, LoyaltyProfile)

    def save_profiles(self, profiles: list[LoyaltyProfile]) -> None:
        self._write(self.profiles_path, [p.to_record() for p in profiles])

    def load_scans(self) -> list[ScanEvent]:
        return self._load(self.scans_path, ScanEvent)

    def save_scans(self, scans: list[ScanEvent]) -> None:
        self._write(self.scans_path, [s.to_record() for s in scans])

    def _ensure_file(self, path: Path) -> None:
        if path.exists():
            return
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreUnavailable(f"Cannot create data directory for {path.name}", file=str(path)) from exc
        self._write(path, [])

    def _load(self, path: Path, model):
        self._ensure_file(path)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.error("store_read_failed", file=str(path), error=str(exc))
            raise StoreUnavailable(f"Cannot read {path.name}", file=str(path)) from exc

        try:
            rows = json.loads(raw or "[]")
            if not isinstance(rows, list):
                raise ValueError(f"expected a JSON array, got {type(rows).__name__}")
            records = [model.model_validate(row) for row in rows]
        except (ValueError, ValidationError) as exc:
            return self._recover_corrupt(path, exc)

        self._loaded.add(path)
        return records

    def _recover_corrupt(self, path: Path, exc: Exception) -> list:
        if path in self._loaded:
            logger.error("store_corrupt_file", file=str(path), error=str(exc), recovered=False)
            raise StoreUnavailable(f"{path.name} is unreadable", file=str(path)) from exc

        quarantine = path.with_name(f"{path.name}.corrupt-{utc_now():%Y%m%dT%H%M%S%f}")
        try:
            os.replace(path, quarantine)
        except OSError as move_exc:
            logger.error("store_corrupt_file", file=str(path), error=str(exc), recovered=False)
            raise StoreUnavailable(f"{path.name} is unreadable", file=str(path)) from move_exc

        logger.error(
            "store_corrupt_file",
            file=str(path),
            quarantined_to=str(quarantine),
            error=str(exc),
            recovered=True,
        )
        self._write(path, [])
        self._loaded.add(path)
        return []

    def _write(self, path: Path, rows: list[dict]) -> None:
        payload = json.dumps(rows, indent=2, ensure_ascii=False)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            logger.error("store_write_failed", file=str(path), error=str(exc))
            raise StoreUnavailable(f"Cannot write {path.name}", file=str(path)) from exc


class MemoryStore:
    """Keeps serialized records in process memory. Tests and dry runs."""

    def __init__(self, profiles: list[LoyaltyProfile] | None = None, scans: list[ScanEvent] | None = None):
        self._profiles = [p.to_record() for p in profiles or []]
        self._scans = [s.to_record() for s in scans or []]
        self.profile_writes = 0
        self.scan_writes = 0

    def load_profiles(self) -> list[LoyaltyProfile]:
        return [LoyaltyProfile.model_validate(r) for r in self._profiles]

    def save_profiles(self, profiles: list[LoyaltyProfile]) -> None:
        self._profiles = [p.to_record() for p in profiles]
        self.profile_writes += 1

    def load_scans(self) -> list[ScanEvent]:
        return [ScanEvent.model_validate(r) for r in self._scans]

    def save_scans(self, scans: list[ScanEvent]) -> None:
        self._scans = [s.to_record() for s in scans]
        self.scan_writes += 1


def _naive_utc(value):
    if value is None:
        return None
    return as_utc(value).replace(tzinfo=None)


class SqlStore:
    """SQLAlchemy backend. Profiles are upserted, scan events only ever inserted."""

    def __init__(self, database_url: str | None = None, engine=None):
        self.engine = engine or make_engine(database_url or "sqlite:///./loyalty.db")
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as exc:
            raise StoreUnavailable("Cannot initialize loyalty database") from exc
        self.SessionLocal = make_session_factory(self.engine)

    def load_profiles(self) -> list[LoyaltyProfile]:
        try:
            with self.SessionLocal() as db:
                rows = db.execute(select(LoyaltyProfileRow).order_by(LoyaltyProfileRow.seq.asc())).scalars().all()
        except SQLAlchemyError as exc:
            logger.error("store_read_failed", table="loyalty_profiles", error=str(exc))
            raise StoreUnavailable("Cannot read loyalty profiles") from exc
        return [
            LoyaltyProfile(
                loyalty_id=r.loyalty_id,
                employee_id=r.employee_id,
                chat_user_id=r.chat_user_id,
                points=r.points,
                scan_count=r.scan_count,
                last_daily_reward_at=r.last_daily_reward_at,
            )
            for r in rows
        ]

    def save_profiles(self, profiles: list[LoyaltyProfile]) -> None:
        try:
            with self.SessionLocal() as db, db.begin():
                existing = {r.loyalty_id: r for r in db.execute(select(LoyaltyProfileRow)).scalars().all()}
                for seq, profile in enumerate(profiles):
                    row = existing.get(profile.loyalty_id)
                    if row is None:
                        row = LoyaltyProfileRow(loyalty_id=profile.loyalty_id)
                        db.add(row)
                    row.seq = seq
                    row.employee_id = profile.employee_id
                    row.chat_user_id = profile.chat_user_id
                    row.points = profile.points
                    row.scan_count = profile.scan_count
                    row.last_daily_reward_at = _naive_utc(profile.last_daily_reward_at)
        except SQLAlchemyError as exc:
            logger.error("store_write_failed", table="loyalty_profiles", error=str(exc))
            raise StoreUnavailable("Cannot write loyalty profiles") from exc

    def load_scans(self) -> list[ScanEvent]:
        try:
            with self.SessionLocal() as db:
                rows = db.execute(select(ScanEventRow).order_by(ScanEventRow.seq.asc())).scalars().all()
        except SQLAlchemyError as exc:
            logger.error("store_read_failed", table="scan_events", error=str(exc))
            raise StoreUnavailable("Cannot read scan events") from exc
        return [
            ScanEvent(id=r.id, loyalty_id=r.loyalty_id, timestamp=r.timestamp, scan_type=r.scan_type)
            for r in rows
        ]

    def save_scans(self, scans: list[ScanEvent]) -> None:
        try:
            with self.SessionLocal() as db, db.begin():
                known = set(db.execute(select(ScanEventRow.id)).scalars().all())
                next_seq = db.execute(select(func.count(ScanEventRow.id))).scalar_one()
                for event in scans:
                    if event.id in known:
                        continue
                    db.add(
                        ScanEventRow(
                            id=event.id,
                            seq=next_seq,
                            loyalty_id=event.loyalty_id,
                            timestamp=_naive_utc(event.timestamp),
                            scan_type=event.scan_type,
                        )
                    )
                    next_seq += 1
        except SQLAlchemyError as exc:
            logger.error("store_write_failed", table="scan_events", error=str(exc))
            raise StoreUnavailable("Cannot write scan events") from exc


def build_store(settings: Settings) -> LedgerStore:
    backend = (settings.LEDGER_STORE or "json").strip().lower()
    if backend == "json":
        return JsonFileStore(settings.LEDGER_DATA_DIR, settings.LOYALTY_FILE, settings.SCANS_FILE)
    if backend == "sql":
        return SqlStore(settings.DATABASE_URL)
    if backend == "memory":
        return MemoryStore()
    raise ValueError(f"Unknown LEDGER_STORE backend: {backend!r}")
