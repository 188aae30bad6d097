# booking_system/utils/referral_tree.py
"""
Safe referral tree walking utilities.
Dealers form a forest through parentID; walks are bounded and cycle-guarded.
"""
import secrets
from collections import deque
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple
from sqlalchemy.orm import Session
import logging

from core.errors import Conflict, InvalidState, NotFound
from models.dealer import Dealer
from booking_system.config.policy import DealerStatus, REFERRAL_CODE_ALPHABET, REFERRAL_CODE_LENGTH

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 10
MAX_TREE_DEPTH = 50


def normalizeCode(code: Optional[str]) -> str:
    """Referral codes are compared trimmed and upper-cased."""
    return (code or "").strip().upper()


def generateReferralCode() -> str:
    """Random 6-character upper-case alphanumeric code."""
    return ''.join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))


class ReferralTree:
    """
    Referral forest operations bound to one session.

    Usage:
        with store.unit_of_work() as session:
            tree = ReferralTree(session)
            for dealer, level in tree.walkAncestors(dealerId, 3):
                ...
    """

    def __init__(self, session: Session):
        self.session = session

    # ═══════════════════════════════════════════════════════════════════
    # CODES
    # ═══════════════════════════════════════════════════════════════════

    def findByCode(self, code: Optional[str]) -> Optional[Dealer]:
        normalized = normalizeCode(code)
        if not normalized:
            return None
        return self.session.query(Dealer).filter_by(referralCode=normalized).first()

    def validateCode(self, code: Optional[str], requireApproved: bool = False) -> int:
        """
        Resolve a referral code to its dealer.

        Args:
            code: Referral code as typed by the user
            requireApproved: Also reject dealers that are not APPROVED

        Returns:
            dealerID of the code owner

        Raises:
            NotFound: Unknown code
            InvalidState: Owner not APPROVED (only with requireApproved)
        """
        dealer = self.findByCode(code)
        if not dealer:
            raise NotFound("Invalid referral code")

        if requireApproved and dealer.status != DealerStatus.APPROVED.value:
            raise InvalidState("Referral code belongs to a dealer that is not approved")

        return dealer.dealerID

    def _uniqueCode(self) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generateReferralCode()
            if not self.session.query(Dealer.dealerID).filter_by(referralCode=code).first():
                return code
        raise Conflict("Could not generate a unique referral code")

    # ═══════════════════════════════════════════════════════════════════
    # INSERT
    # ═══════════════════════════════════════════════════════════════════

    def insertDealer(self, userId: int, referralCode: Optional[str] = None) -> Dealer:
        """
        Create a PENDING dealer with a fresh code.

        parentID comes from the referral code (owner must be APPROVED) and
        is never changed afterwards, so the forest cannot acquire cycles
        through this path.
        """
        parentId = None
        if normalizeCode(referralCode):
            parentId = self.validateCode(referralCode, requireApproved=True)

        dealer = Dealer(
            userID=userId,
            referralCode=self._uniqueCode(),
            status=DealerStatus.PENDING.value,
            parentID=parentId,
            commission=Decimal("0")
        )
        self.session.add(dealer)
        self.session.flush()

        logger.info(
            f"Dealer {dealer.dealerID} inserted for user {userId} "
            f"(code={dealer.referralCode}, parent={parentId})"
        )
        return dealer

    # ═══════════════════════════════════════════════════════════════════
    # UPWARD
    # ═══════════════════════════════════════════════════════════════════

    def walkAncestors(self, dealerId: int, maxLevels: int) -> List[Tuple[Dealer, int]]:
        """
        Dealer and its uplines, nearest first.

        Level 1 is the dealer itself. Stops at a root, at maxLevels, at a
        dangling parentID, or on a revisited dealer.

        Raises:
            NotFound: Starting dealer missing
        """
        current = self.session.get(Dealer, dealerId)
        if not current:
            raise NotFound("Dealer not found")

        chain = []
        visited = set()
        level = 1

        while current is not None and level <= maxLevels:
            # Check for cycles
            if current.dealerID in visited:
                logger.error(f"Cycle detected at dealer {current.dealerID} (walk from {dealerId})")
                break

            visited.add(current.dealerID)
            chain.append((current, level))

            if current.parentID is None:
                break

            parent = self.session.get(Dealer, current.parentID)
            if not parent:
                logger.warning(
                    f"Parent not found: dealerID={current.parentID} for dealer {current.dealerID}"
                )
                break

            current = parent
            level += 1

        return chain

    # ═══════════════════════════════════════════════════════════════════
    # DOWNWARD
    # ═══════════════════════════════════════════════════════════════════

    def getChildren(self, dealerId: int) -> List[Dealer]:
        """Direct referrals, oldest first."""
        return self.session.query(Dealer).filter(
            Dealer.parentID == dealerId
        ).order_by(Dealer.createdAt, Dealer.dealerID).all()

    def walkDescendants(self, dealerId: int, maxDepth: int = MAX_TREE_DEPTH) -> List[Tuple[Dealer, int]]:
        """
        Breadth-first downline, excluding the dealer itself.

        Returns:
            [(dealer, depth)] with depth 1 for direct referrals
        """
        result = []
        visited: Set[int] = {dealerId}
        queue = deque([(dealerId, 0)])

        while queue:
            currentId, depth = queue.popleft()
            if depth >= maxDepth:
                logger.warning(f"Max depth ({maxDepth}) reached below dealer {currentId}")
                continue

            for child in self.getChildren(currentId):
                if child.dealerID in visited:
                    logger.error(f"Cycle detected in downline at dealer {child.dealerID}")
                    continue
                visited.add(child.dealerID)
                result.append((child, depth + 1))
                queue.append((child.dealerID, depth + 1))

        return result

    def aggregateSubtree(self, dealerId: int) -> Dict[str, Any]:
        """
        Size and commission of a dealer's subtree.

        Returns:
            {totalChildren: all descendants, totalCommission: own + descendants' running totals}
        """
        dealer = self.session.get(Dealer, dealerId)
        if not dealer:
            raise NotFound("Dealer not found")

        descendants = self.walkDescendants(dealerId)
        totalCommission = Decimal(dealer.commission or 0)
        for child, _ in descendants:
            totalCommission += Decimal(child.commission or 0)

        return {
            "totalChildren": len(descendants),
            "totalCommission": totalCommission,
        }

    def buildForest(self, maxDepth: int = MAX_TREE_DEPTH) -> List[Dict[str, Any]]:
        """
        Whole dealer forest as nested dicts for the admin tree view.

        Roots are level 0. Each node carries recursive totalChildren and
        totalCommission.
        """
        dealers = self.session.query(Dealer).order_by(Dealer.createdAt, Dealer.dealerID).all()

        childrenOf: Dict[Optional[int], List[Dealer]] = {}
        for dealer in dealers:
            childrenOf.setdefault(dealer.parentID, []).append(dealer)

        visited: Set[int] = set()

        def build(dealer: Dealer, level: int) -> Dict[str, Any]:
            visited.add(dealer.dealerID)
            children = []
            if level < maxDepth:
                for child in childrenOf.get(dealer.dealerID, []):
                    if child.dealerID in visited:
                        logger.error(f"Cycle detected in forest at dealer {child.dealerID}")
                        continue
                    children.append(build(child, level + 1))

            return {
                "id": dealer.dealerID,
                "user": {
                    "id": dealer.user.userID,
                    "name": dealer.user.name,
                    "email": dealer.user.email,
                } if dealer.user else None,
                "referralCode": dealer.referralCode,
                "status": dealer.status,
                "commission": Decimal(dealer.commission or 0),
                "level": level,
                "totalChildren": sum(c["totalChildren"] + 1 for c in children),
                "totalCommission": sum(
                    (c["totalCommission"] for c in children), Decimal(dealer.commission or 0)
                ),
                "children": children,
            }

        forest = [build(root, 0) for root in childrenOf.get(None, [])]
        logger.info(f"Built dealer tree with {len(forest)} root nodes")
        return forest
