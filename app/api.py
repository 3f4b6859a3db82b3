from typing import List

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from .config import settings
from .errors import EmployeeMissing, EmployeeNotFound, LedgerError, NotRegistered, ProfileNotFound, StoreUnavailable
from .ledger import LoyaltyLedger
from .qr import QR_SCAN_TYPE, encode_qr_payload
from .schemas import DailyRewardsOut, LoyaltyProfile, ProfileOut, ProfileRegister, ScanCreate, ScanEventOut

logger = structlog.get_logger("loyalty.api")

router = APIRouter(prefix="/api")
public_router = APIRouter()

_STATUS_BY_ERROR = {
    EmployeeNotFound: status.HTTP_404_NOT_FOUND,
    NotRegistered: status.HTTP_404_NOT_FOUND,
    ProfileNotFound: status.HTTP_404_NOT_FOUND,
    EmployeeMissing: status.HTTP_409_CONFLICT,
    StoreUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_ledger(request: Request) -> LoyaltyLedger:
    return request.app.state.ledger


def get_public_host(request: Request) -> str:
    return getattr(request.app.state, "public_host", None) or settings.PUBLIC_HOST


def _http_error(exc: LedgerError) -> HTTPException:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    headers = None
    if isinstance(exc, StoreUnavailable):
        logger.error("ledger_store_unavailable", **exc.as_dict())
        headers = {"Retry-After": str(max(1, int(settings.STORE_RETRY_AFTER_SECONDS)))}
    else:
        logger.warning("ledger_request_rejected", **exc.as_dict())
    return HTTPException(status_code=status_code, detail=exc.as_dict(), headers=headers)


def _to_profile_out(ledger: LoyaltyLedger, profile: LoyaltyProfile, public_host: str) -> ProfileOut:
    employee = ledger.directory.find_employee(profile.employee_id)
    if employee is None:
        raise EmployeeMissing(employee_id=profile.employee_id, loyalty_id=profile.loyalty_id)
    return ProfileOut(
        loyalty_id=profile.loyalty_id,
        employee_id=profile.employee_id,
        chat_user_id=profile.chat_user_id,
        points=profile.points,
        scan_count=profile.scan_count,
        last_daily_reward_at=profile.last_daily_reward_at,
        first_name=employee.first_name,
        last_name=employee.last_name,
        role=employee.role,
        qr_url=encode_qr_payload(public_host, employee, profile),
    )


@router.post("/profiles", response_model=ProfileOut)
def register_profile(
    payload: ProfileRegister,
    ledger: LoyaltyLedger = Depends(get_ledger),
    public_host: str = Depends(get_public_host),
):
    try:
        profile = ledger.register_profile(payload.employee_id, payload.chat_user_id)
        return _to_profile_out(ledger, profile, public_host)
    except LedgerError as exc:
        raise _http_error(exc) from exc


@router.get("/profiles/{chat_user_id}", response_model=ProfileOut)
def show_profile(
    chat_user_id: str,
    ledger: LoyaltyLedger = Depends(get_ledger),
    public_host: str = Depends(get_public_host),
):
    try:
        ledger.apply_daily_rewards()
        profile = ledger.lookup_profile(chat_user_id)
        return _to_profile_out(ledger, profile, public_host)
    except LedgerError as exc:
        raise _http_error(exc) from exc


@router.post("/profiles/{chat_user_id}/scans", response_model=ProfileOut)
def scan_profile(
    chat_user_id: str,
    payload: ScanCreate,
    ledger: LoyaltyLedger = Depends(get_ledger),
    public_host: str = Depends(get_public_host),
):
    try:
        ledger.apply_daily_rewards()
        profile = ledger.lookup_profile(chat_user_id)
        # Employee must still resolve before the scan is credited.
        _to_profile_out(ledger, profile, public_host)
        updated = ledger.record_scan(profile.loyalty_id, payload.scan_type)
        return _to_profile_out(ledger, updated, public_host)
    except LedgerError as exc:
        raise _http_error(exc) from exc


@router.get("/profiles/{chat_user_id}/scans", response_model=List[ScanEventOut])
def list_profile_scans(chat_user_id: str, ledger: LoyaltyLedger = Depends(get_ledger)):
    try:
        profile = ledger.lookup_profile(chat_user_id)
        scans = ledger.list_scans(profile.loyalty_id)
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return [
        ScanEventOut(id=s.id, loyalty_id=s.loyalty_id, timestamp=s.timestamp, scan_type=s.scan_type)
        for s in scans
    ]


@router.post("/daily-rewards", response_model=DailyRewardsOut)
def run_daily_rewards(ledger: LoyaltyLedger = Depends(get_ledger)):
    try:
        profiles, rewarded = ledger.grant_daily_rewards()
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return DailyRewardsOut(updated=rewarded, profiles=len(profiles))


@public_router.get("/scan", response_model=ProfileOut)
def qr_scan(
    loyalty_id: str = Query(..., alias="loyaltyId", min_length=1),
    scan_type: str = Query(QR_SCAN_TYPE, alias="scanType", min_length=1, max_length=40),
    ledger: LoyaltyLedger = Depends(get_ledger),
    public_host: str = Depends(get_public_host),
):
    """Landing endpoint behind the QR payload URL. Other query params are informational."""
    try:
        ledger.apply_daily_rewards()
        updated = ledger.record_scan(loyalty_id, scan_type)
        return _to_profile_out(ledger, updated, public_host)
    except LedgerError as exc:
        raise _http_error(exc) from exc
