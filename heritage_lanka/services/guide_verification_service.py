"""
Guide Verification Service - admin review of guide accounts

New guides start PENDING and may not accept trips until an admin verifies
them. Guides with no verification row predate the review step and are
treated as verified.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from heritage_lanka.core.clock import Clock, system_clock
from heritage_lanka.core.exceptions import NotFoundError, ValidationFailedError
from heritage_lanka.models.user import Guide, GuideVerification, GuideVerificationStatus

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    GuideVerificationStatus.PENDING: "Your account is pending verification. You will be notified once verified.",
    GuideVerificationStatus.VERIFIED: "Your account is verified. You can accept trip requests.",
    GuideVerificationStatus.REJECTED: "Your account verification was rejected.",
}
LEGACY_MESSAGE = "Your account is verified (legacy account)"


@dataclass
class VerificationState:
    status: GuideVerificationStatus
    is_legacy: bool
    verified_at: Optional[datetime] = None
    verified_by: Optional[int] = None
    rejection_reason: Optional[str] = None

    @property
    def message(self) -> str:
        return LEGACY_MESSAGE if self.is_legacy else STATUS_MESSAGES[self.status]


def verification_state(record: Optional[GuideVerification]) -> VerificationState:
    if record is None:
        return VerificationState(status=GuideVerificationStatus.VERIFIED, is_legacy=True)
    return VerificationState(
        status=GuideVerificationStatus(record.verification_status),
        is_legacy=False,
        verified_at=record.verified_at,
        verified_by=record.verified_by,
        rejection_reason=record.rejection_reason,
    )


class GuideVerificationService:
    """Reads and admin decisions on guide verification"""

    def __init__(self, db: Session, clock: Clock = system_clock):
        self.db = db
        self.clock = clock

    def _get_guide(self, guide_id: int) -> Guide:
        guide = self.db.execute(
            select(Guide)
            .where(Guide.id == guide_id)
            .options(selectinload(Guide.verification), selectinload(Guide.user))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if guide is None:
            raise NotFoundError("Guide", guide_id)
        return guide

    def get_status(self, guide_id: int) -> VerificationState:
        return verification_state(self._get_guide(guide_id).verification)

    def can_accept_trips(self, guide_id: int) -> bool:
        return self.get_status(guide_id).status == GuideVerificationStatus.VERIFIED

    def verify_guide(self, guide_id: int, admin_id: int) -> VerificationState:
        """Mark a guide verified, clearing any earlier rejection reason"""
        guide = self._get_guide(guide_id)
        record = guide.verification or GuideVerification(guide_id=guide.id)
        record.verification_status = GuideVerificationStatus.VERIFIED
        record.verified_at = self.clock.now()
        record.verified_by = admin_id
        record.rejection_reason = None
        guide.verification = record
        self.db.commit()
        self.db.refresh(record)
        logger.info(
            f"Guide {guide.id} verified by admin {admin_id}",
            extra={"guide_id": guide.id, "admin_id": admin_id},
        )
        return verification_state(record)

    def reject_guide(self, guide_id: int, admin_id: int, reason: str) -> VerificationState:
        """
        Reject a guide. A reason is required and is shown back to the guide.

        Raises:
            ValidationFailedError: If the reason is blank
            NotFoundError: If the guide does not exist
        """
        if not reason or not reason.strip():
            raise ValidationFailedError("Rejection reason is required", details={"field": "reason"})
        guide = self._get_guide(guide_id)
        record = guide.verification or GuideVerification(guide_id=guide.id)
        record.verification_status = GuideVerificationStatus.REJECTED
        record.verified_at = None
        record.verified_by = admin_id
        record.rejection_reason = reason.strip()
        guide.verification = record
        self.db.commit()
        self.db.refresh(record)
        logger.info(
            f"Guide {guide.id} rejected by admin {admin_id}",
            extra={"guide_id": guide.id, "admin_id": admin_id},
        )
        return verification_state(record)

    def list_guides(
        self, status: Optional[GuideVerificationStatus] = None
    ) -> List[Tuple[Guide, VerificationState]]:
        """All guides with their verification state, newest first, optionally filtered"""
        guides = self.db.execute(
            select(Guide)
            .options(selectinload(Guide.verification), selectinload(Guide.user))
            .order_by(Guide.created_at.desc(), Guide.id.desc())
        ).scalars().all()
        rows = [(guide, verification_state(guide.verification)) for guide in guides]
        if status is not None:
            rows = [(guide, state) for guide, state in rows if state.status == status]
        return rows
