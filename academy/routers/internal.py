"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header.
Call from external cron (Render/Railway/GH Actions).
"""
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from academy.core.config import settings
from academy.core.deps import get_db
from academy.services import inactivity_scanner


router = APIRouter(prefix="/internal/scheduled", tags=["internal"])


def verify_internal_secret(x_internal_secret: str = Header(...)) -> None:
    """Verify the internal secret header."""
    expected = settings.INTERNAL_SECRET
    if not expected:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if x_internal_secret != expected:
        raise HTTPException(status_code=403, detail="Invalid internal secret")


class InactiveScanResponse(BaseModel):
    orgs_scanned: int
    rules_checked: int
    members_fired: int
    emails_sent: int


@router.post(
    "/inactive-scan",
    response_model=InactiveScanResponse,
    dependencies=[Depends(verify_internal_secret)],
)
def run_inactive_scan(org_id: UUID | None = None, db: Session = Depends(get_db)):
    """
    Daily sweep for idle members.

    Fires inactive_days automation rules; the delivery ledger keeps each rule
    at-most-once per member, so the sweep is safe to re-run.
    """
    result = inactivity_scanner.scan_inactive_members(db, org_id=org_id)
    return InactiveScanResponse(
        orgs_scanned=result.org_count,
        rules_checked=result.rules_checked,
        members_fired=result.members_fired,
        emails_sent=result.emails_sent,
    )
