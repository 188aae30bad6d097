# booking_system/services/dealer_service.py
"""
Dealer onboarding - applications, admin decisions and tree views.
"""
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging

from core.db import LedgerStore
from core.errors import InvalidState, NotFound
from models.dealer import Dealer
from models.user import User
from notifications.base import Notifier, NullNotifier, safeNotify
from booking_system.config.policy import DealerStatus, UserRole
from booking_system.utils.referral_tree import ReferralTree, normalizeCode
from booking_system.utils.time_machine import TimeMachine, timeMachine

logger = logging.getLogger(__name__)


class DealerService:
    """Service for dealer applications and the referral forest."""

    def __init__(
            self,
            store: LedgerStore,
            notifier: Optional[Notifier] = None,
            clock: Optional[TimeMachine] = None
    ):
        self.store = store
        self.notifier = notifier or NullNotifier()
        self.clock = clock or timeMachine

    async def applyForDealer(self, userId: int, referralCode: Optional[str] = None) -> Dealer:
        """
        Existing user applies to become a dealer.

        Args:
            userId: Applicant
            referralCode: Optional code of an APPROVED dealer who becomes the parent

        Returns:
            New PENDING dealer

        Raises:
            NotFound: User missing, or unknown referral code
            InvalidState: User is admin/dealer already, has an application,
                or the referral code owner is not APPROVED
        """
        with self.store.unit_of_work() as session:
            user = session.get(User, userId)
            if not user:
                raise NotFound("User not found")

            if user.role == UserRole.ADMIN.value:
                raise InvalidState("Admins cannot apply for dealer status")

            if user.role == UserRole.DEALER.value:
                raise InvalidState("User is already a dealer")

            existing = session.query(Dealer).filter_by(userID=userId).first()
            if existing:
                raise InvalidState(
                    f"User already has a dealer application ({existing.status})"
                )

            dealer = ReferralTree(session).insertDealer(userId, referralCode)
            dealer.createdAt = self.clock.now
            dealer.updatedAt = self.clock.now
            session.flush()

            # Load relationships the notifier reads after the session closes
            _ = dealer.user, dealer.parent

        logger.info(
            f"✓ Dealer application from user {userId}: dealer {dealer.dealerID}, "
            f"code {dealer.referralCode}, parent {dealer.parentID}"
        )

        await safeNotify(self.notifier, "notifyAdminOfDealerApplication", dealer)

        return dealer

    async def approveDealer(self, dealerId: int) -> Dealer:
        """Set APPROVED and give the user the DEALER role."""
        return self._decide(dealerId, DealerStatus.APPROVED, UserRole.DEALER)

    async def rejectDealer(self, dealerId: int) -> Dealer:
        """Set REJECTED and put the user back to USER."""
        return self._decide(dealerId, DealerStatus.REJECTED, UserRole.USER)

    def _decide(self, dealerId: int, status: DealerStatus, role: UserRole) -> Dealer:
        with self.store.unit_of_work() as session:
            dealer = session.get(Dealer, dealerId)
            if not dealer:
                raise NotFound("Dealer not found")

            now = self.clock.now
            previous = dealer.status
            dealer.status = status.value
            dealer.updatedAt = now
            dealer.user.role = role.value
            dealer.user.updatedAt = now

        logger.info(f"Dealer {dealerId}: {previous} → {status.value}, user {dealer.userID} role {role.value}")
        return dealer

    # ═══════════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════════

    def getDealerByReferralCode(self, referralCode: str) -> Dealer:
        dealer = self.store.read(lambda session: ReferralTree(session).findByCode(referralCode))
        if not dealer:
            raise NotFound(f"No dealer with referral code {normalizeCode(referralCode)}")
        return dealer

    def getPendingDealers(self) -> List[Dealer]:
        """Applications waiting for a decision, newest first."""
        return self.store.read(
            lambda session: session.query(Dealer)
            .filter(Dealer.status == DealerStatus.PENDING.value)
            .order_by(Dealer.createdAt.desc(), Dealer.dealerID.desc())
            .all()
        )

    def getDealerTree(self) -> List[Dict[str, Any]]:
        """Admin view of the whole referral forest."""
        return self.store.read(lambda session: ReferralTree(session).buildForest())

    def getSubtreeSummary(self, dealerId: int) -> Dict[str, Any]:
        def _summary(session: Session) -> Dict[str, Any]:
            tree = ReferralTree(session)
            summary = tree.aggregateSubtree(dealerId)
            summary["directChildren"] = len(tree.getChildren(dealerId))
            return summary

        return self.store.read(_summary)
