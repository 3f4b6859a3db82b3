"""
Loyalty ledger engine: profile registry, daily reward and scan recording.

The engine is the only writer of the profile and scan record sets. Each set
has its own lock and every load-mutate-save sequence against a set runs while
holding that lock, so concurrent chat sessions can neither lose an update nor
register the same chat user twice.
"""

import threading
import uuid
from datetime import datetime
from typing import Callable

import structlog

from .config import settings
from .employees import EmployeeDirectory
from .errors import EmployeeNotFound, NotRegistered, ProfileNotFound
from .schemas import LoyaltyProfile, ScanEvent, as_utc, utc_now
from .store import LedgerStore

logger = structlog.get_logger("loyalty.ledger")


class LoyaltyLedger:
    def __init__(
        self,
        store: LedgerStore,
        directory: EmployeeDirectory,
        *,
        starting_points: int | None = None,
        points_per_scan: int | None = None,
        daily_points: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.directory = directory
        self.starting_points = settings.STARTING_POINTS if starting_points is None else starting_points
        self.points_per_scan = settings.POINTS_PER_SCAN if points_per_scan is None else points_per_scan
        self.daily_points = settings.DAILY_POINTS if daily_points is None else daily_points
        self._clock = clock
        self._profiles_lock = threading.Lock()
        self._scans_lock = threading.Lock()

    def now(self) -> datetime:
        return as_utc(self._clock())

    # --- profile registry ---

    def lookup_profile(self, chat_user_id: str) -> LoyaltyProfile:
        chat_user_id = str(chat_user_id)
        with self._profiles_lock:
            profiles = self.store.load_profiles()
        for profile in profiles:
            if profile.chat_user_id == chat_user_id:
                return profile
        raise NotRegistered(chat_user_id=chat_user_id)

    def register_profile(self, employee_id: str, chat_user_id: str) -> LoyaltyProfile:
        chat_user_id = str(chat_user_id)
        employee = self.directory.find_employee(employee_id)
        if employee is None:
            logger.info("registration_rejected", employee_id=employee_id, chat_user_id=chat_user_id)
            raise EmployeeNotFound(employee_id=(employee_id or "").strip())

        with self._profiles_lock:
            profiles = self.store.load_profiles()
            for profile in profiles:
                if profile.chat_user_id == chat_user_id:
                    return profile

            profile = LoyaltyProfile(
                loyalty_id=str(uuid.uuid4()),
                employee_id=employee.employee_id,
                chat_user_id=chat_user_id,
                points=self.starting_points,
                scan_count=0,
                last_daily_reward_at=None,
            )
            profiles.append(profile)
            self.store.save_profiles(profiles)

        logger.info(
            "profile_registered",
            loyalty_id=profile.loyalty_id,
            employee_id=profile.employee_id,
            chat_user_id=chat_user_id,
        )
        return profile

    # --- daily reward ---

    def apply_daily_rewards(self) -> list[LoyaltyProfile]:
        """
        Grant the daily bonus to every profile not yet rewarded on the current
        UTC calendar day. Writes the profile set only when something changed.
        """
        profiles, _ = self.grant_daily_rewards()
        return profiles

    def grant_daily_rewards(self) -> tuple[list[LoyaltyProfile], int]:
        with self._profiles_lock:
            now = self.now()
            today = now.date()
            profiles = self.store.load_profiles()
            updated: list[LoyaltyProfile] = []
            rewarded = 0
            for profile in profiles:
                last = profile.last_daily_reward_at
                if last is not None and as_utc(last).date() >= today:
                    updated.append(profile)
                    continue
                updated.append(
                    profile.model_copy(
                        update={
                            "points": profile.points + self.daily_points,
                            "last_daily_reward_at": now,
                        }
                    )
                )
                rewarded += 1

            if rewarded:
                self.store.save_profiles(updated)

        if rewarded:
            logger.info("daily_rewards_applied", rewarded=rewarded, day=today.isoformat())
        return updated, rewarded

    # --- scans ---

    def record_scan(self, loyalty_id: str, scan_type: str = "bot") -> LoyaltyProfile:
        with self._profiles_lock:
            profiles = self.store.load_profiles()
            for idx, profile in enumerate(profiles):
                if profile.loyalty_id == loyalty_id:
                    break
            else:
                raise ProfileNotFound(loyalty_id=loyalty_id)

            updated = profile.model_copy(
                update={
                    "scan_count": profile.scan_count + 1,
                    "points": profile.points + self.points_per_scan,
                }
            )
            profiles[idx] = updated
            self.store.save_profiles(profiles)

            # History is appended only after the bonus is durable.
            event = ScanEvent(
                id=str(uuid.uuid4()),
                loyalty_id=loyalty_id,
                timestamp=self.now(),
                scan_type=scan_type,
            )
            with self._scans_lock:
                scans = self.store.load_scans()
                scans.append(event)
                self.store.save_scans(scans)

        logger.info(
            "scan_recorded",
            loyalty_id=loyalty_id,
            scan_type=scan_type,
            scan_count=updated.scan_count,
            points=updated.points,
        )
        return updated

    def check_store(self) -> dict[str, int]:
        """Load both record sets under their locks. Raises ``StoreUnavailable``."""
        with self._profiles_lock:
            profiles = len(self.store.load_profiles())
        with self._scans_lock:
            scans = len(self.store.load_scans())
        return {"profiles": profiles, "scans": scans}

    def list_scans(self, loyalty_id: str) -> list[ScanEvent]:
        with self._scans_lock:
            scans = self.store.load_scans()
        return [s for s in scans if s.loyalty_id == loyalty_id]
