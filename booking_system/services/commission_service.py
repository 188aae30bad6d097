# booking_system/services/commission_service.py
"""
Commission engine - distributes a sale across the dealer's upline.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Dict, List, Optional
from sqlalchemy import func, update
from sqlalchemy.orm import Session
import logging

from config import Config
from core.db import LedgerStore
from core.errors import InvalidInput, NotFound
from models.commission import Commission, CommissionConfig
from models.dealer import Dealer
from models.property import Property
from notifications.base import Notifier, NullNotifier, safeNotify
from booking_system.config.policy import (
    COMMISSION_QUANTUM,
    DEFAULT_COMMISSION_LEVELS,
    DEFAULT_MAX_COMMISSION_LEVELS,
)
from booking_system.utils.referral_tree import ReferralTree
from booking_system.utils.time_machine import TimeMachine, timeMachine

logger = logging.getLogger(__name__)


def _toDecimal(value, field: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInput(f"{field} must be a number")
    if not result.is_finite():
        raise InvalidInput(f"{field} must be a finite number")
    return result


class CommissionService:
    """
    Service for multi-level dealer commissions.

    Level 1 is the property's attributed dealer, level 2 its parent, and
    so on. Each level is written in its own transaction: the Commission
    row and the dealer's running total move together.
    """

    def __init__(
            self,
            store: LedgerStore,
            notifier: Optional[Notifier] = None,
            maxLevels: Optional[int] = None,
            clock: Optional[TimeMachine] = None
    ):
        self.store = store
        self.notifier = notifier or NullNotifier()
        self.maxLevels = maxLevels or Config.get(
            Config.COMMISSION_MAX_LEVELS, DEFAULT_MAX_COMMISSION_LEVELS
        )
        self.clock = clock or timeMachine

    # ═══════════════════════════════════════════════════════════════════
    # CALCULATION
    # ═══════════════════════════════════════════════════════════════════

    async def calculateCommissions(
            self,
            propertyId: int,
            baseAmount,
            bookingId: Optional[int] = None
    ) -> List[Commission]:
        """
        Emit commissions for a sale of propertyId.

        Walks the attributed dealer's ancestors up to maxLevels. The walk
        stops at the first level without a CommissionConfig row.

        Args:
            propertyId: Sold property
            baseAmount: Sale value the percentages apply to
            bookingId: Originating booking, if any

        Returns:
            Commission rows written, level 1 first

        Raises:
            InvalidInput: baseAmount not positive
            NotFound: Property missing or without attributed dealer
        """
        amount = _toDecimal(baseAmount, "baseAmount")
        if amount <= 0:
            raise InvalidInput("baseAmount must be positive")

        def _plan(session: Session):
            property = session.get(Property, propertyId)
            if not property or property.dealerID is None:
                raise NotFound("Property or dealer not found")

            chain = ReferralTree(session).walkAncestors(property.dealerID, self.maxLevels)
            return (
                property.title,
                [(dealer.dealerID, level) for dealer, level in chain],
                self._loadConfig(session),
            )

        propertyTitle, chain, config = self.store.read(_plan)

        commissions = []
        total = Decimal("0")

        for dealerId, level in chain:
            percentage = config.get(level)
            if percentage is None:
                logger.info(f"No commission config for level {level}, stopping walk")
                break

            value = (amount * percentage / 100).quantize(COMMISSION_QUANTUM, rounding=ROUND_HALF_UP)
            commission, dealer = self._recordCommission(
                dealerId, propertyId, bookingId, value, level
            )
            commissions.append(commission)
            total += value

            logger.info(
                f"Commission level {level}: dealer {dealerId} +{value} "
                f"({percentage}% of {amount})"
            )

            await safeNotify(
                self.notifier, "notifyDealerOfCommission", dealer, value, level, propertyTitle
            )

        logger.info(
            f"✓ Commissions for property {propertyId}: "
            f"{len(commissions)} level(s), total {total}"
        )
        return commissions

    def _recordCommission(
            self,
            dealerId: int,
            propertyId: int,
            bookingId: Optional[int],
            value: Decimal,
            level: int
    ):
        """Insert the ledger row and bump the running total in one transaction."""
        now = self.clock.now
        with self.store.unit_of_work() as session:
            commission = Commission(
                dealerID=dealerId,
                propertyID=propertyId,
                bookingID=bookingId,
                amount=value,
                level=level,
                createdAt=now,
                updatedAt=now
            )
            session.add(commission)

            session.execute(
                update(Dealer)
                .where(Dealer.dealerID == dealerId)
                .values(commission=Dealer.commission + value, updatedAt=now)
                .execution_options(synchronize_session=False)
            )
            session.flush()

            dealer = session.get(Dealer, dealerId)

        return commission, dealer

    # ═══════════════════════════════════════════════════════════════════
    # CONFIGURATION
    # ═══════════════════════════════════════════════════════════════════

    @staticmethod
    def _loadConfig(session: Session) -> Dict[int, Decimal]:
        rows = session.query(CommissionConfig).order_by(CommissionConfig.level).all()
        return {row.level: Decimal(row.percentage) for row in rows}

    def getCommissionConfig(self) -> Dict[int, Decimal]:
        """Level -> percentage, ascending by level."""
        return self.store.read(self._loadConfig)

    def setCommissionConfig(self, level: int, percentage) -> None:
        """
        Insert or update the percentage for a level.

        Raises:
            InvalidInput: level < 1 or percentage outside [0, 100]
        """
        if not isinstance(level, int) or isinstance(level, bool) or level < 1:
            raise InvalidInput("level must be a positive integer")

        value = _toDecimal(percentage, "percentage")
        if value < 0 or value > 100:
            raise InvalidInput("percentage must be between 0 and 100")

        with self.store.unit_of_work() as session:
            row = session.query(CommissionConfig).filter_by(level=level).first()
            if row:
                previous = row.percentage
                row.percentage = value
                row.updatedAt = self.clock.now
            else:
                previous = None
                session.add(CommissionConfig(level=level, percentage=value))

        logger.info(f"Commission config level {level}: {previous} → {value}")

    def ensureDefaultConfig(self) -> bool:
        """
        Seed the default levels when the table is empty.

        Returns:
            True if defaults were written
        """
        with self.store.unit_of_work() as session:
            if session.query(CommissionConfig).count() > 0:
                return False

            for level, percentage in DEFAULT_COMMISSION_LEVELS.items():
                session.add(CommissionConfig(level=level, percentage=percentage))

        logger.info(f"✓ Default commission config seeded: {DEFAULT_COMMISSION_LEVELS}")
        return True

    # ═══════════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════════

    def getDealerCommissions(self, dealerId: int) -> List[Commission]:
        """Dealer's ledger entries, newest first."""
        return self.store.read(
            lambda session: session.query(Commission)
            .filter(Commission.dealerID == dealerId)
            .order_by(Commission.createdAt.desc(), Commission.commissionID.desc())
            .all()
        )

    def getDealerStats(self, dealerId: int) -> Dict[str, Any]:
        def _stats(session: Session) -> Dict[str, Any]:
            dealer = session.get(Dealer, dealerId)
            if not dealer:
                raise NotFound("Dealer not found")

            ledgerTotal = session.query(
                func.coalesce(func.sum(Commission.amount), 0)
            ).filter(Commission.dealerID == dealerId).scalar()

            return {
                "totalCommissions": Decimal(ledgerTotal).quantize(COMMISSION_QUANTUM),
                "runningTotal": Decimal(dealer.commission or 0),
                "totalProperties": session.query(Property).filter(
                    Property.dealerID == dealerId
                ).count(),
                "childrenCount": session.query(Dealer).filter(
                    Dealer.parentID == dealerId
                ).count(),
            }

        return self.store.read(_stats)

    def reconcileDealerTotals(self, apply: bool = False) -> List[Dict[str, Any]]:
        """
        Compare every dealer's running total with SUM(Commission.amount).

        Args:
            apply: Overwrite drifted running totals with the ledger sum

        Returns:
            [{dealerID, recorded, ledger}] for every dealer that drifted
        """
        drifted = []

        with self.store.unit_of_work() as session:
            sums = dict(
                session.query(Commission.dealerID, func.sum(Commission.amount))
                .group_by(Commission.dealerID)
                .all()
            )

            for dealer in session.query(Dealer).order_by(Dealer.dealerID).all():
                recorded = Decimal(dealer.commission or 0)
                ledger = Decimal(sums.get(dealer.dealerID) or 0).quantize(COMMISSION_QUANTUM)
                if recorded != ledger:
                    drifted.append({
                        "dealerID": dealer.dealerID,
                        "recorded": recorded,
                        "ledger": ledger,
                    })
                    if apply:
                        dealer.commission = ledger
                        dealer.updatedAt = self.clock.now

        if drifted:
            logger.warning(
                f"Commission drift on {len(drifted)} dealer(s)"
                f"{' (fixed)' if apply else ''}: {[d['dealerID'] for d in drifted]}"
            )
        else:
            logger.info("✓ Dealer running totals match the commission ledger")

        return drifted
