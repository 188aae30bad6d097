# tests/test_referral_tree.py
"""
Tests for ReferralTree walks.

Key principle: every walk is bounded and terminates, even when the
stored parent links are corrupted into a cycle.

Run:
    pytest tests/test_referral_tree.py -v
"""
from decimal import Decimal

import pytest
from sqlalchemy import update

from core.errors import InvalidState, NotFound
from models import Dealer
from models.enums import DealerStatus
from booking_system.config.policy import REFERRAL_CODE_ALPHABET, REFERRAL_CODE_LENGTH
from booking_system.utils.referral_tree import ReferralTree, generateReferralCode


@pytest.fixture
def chain(make_dealer):
    """Four-level chain: root ← d2 ← d3 ← leaf."""
    root = make_dealer(commission=Decimal("40.00"))
    d2 = make_dealer(parent=root, commission=Decimal("30.00"))
    d3 = make_dealer(parent=d2, commission=Decimal("20.00"))
    leaf = make_dealer(parent=d3, commission=Decimal("10.00"))
    return root, d2, d3, leaf


def walk(store, dealerId, maxLevels):
    return store.read(
        lambda session: [
            (dealer.dealerID, level)
            for dealer, level in ReferralTree(session).walkAncestors(dealerId, maxLevels)
        ]
    )


# =============================================================================
# TEST CLASS: Codes
# =============================================================================

class TestReferralCodes:
    """Generation and validation of referral codes."""

    def test_generated_code_shape(self):
        """
        TEST: 6 characters from A-Z0-9.
        """
        for _ in range(50):
            code = generateReferralCode()
            assert len(code) == REFERRAL_CODE_LENGTH
            assert set(code) <= set(REFERRAL_CODE_ALPHABET)

    def test_validate_code_is_trimmed_and_uppercased(self, store, make_dealer):
        """
        TEST: ' abc123 ' resolves the dealer with code ABC123.
        """
        dealer = make_dealer(referralCode="ABC123")

        found = store.read(lambda session: ReferralTree(session).validateCode(" abc123 "))

        assert found == dealer.dealerID

    def test_unknown_code(self, store):
        """
        TEST: Unknown code → NotFound.
        """
        with pytest.raises(NotFound):
            store.read(lambda session: ReferralTree(session).validateCode("ZZZZZZ"))

    def test_unapproved_owner_rejected_when_required(self, store, make_dealer):
        """
        TEST: PENDING owner passes plain validation but not requireApproved.
        """
        dealer = make_dealer(status=DealerStatus.PENDING.value, referralCode="PEND01")

        assert store.read(lambda s: ReferralTree(s).validateCode("PEND01")) == dealer.dealerID
        with pytest.raises(InvalidState):
            store.read(lambda s: ReferralTree(s).validateCode("PEND01", requireApproved=True))


# =============================================================================
# TEST CLASS: insertDealer
# =============================================================================

class TestInsertDealer:
    """New dealers get a fresh code and a validated parent."""

    def test_insert_with_parent(self, store, make_dealer, make_user):
        """
        TEST: Parent comes from an APPROVED owner's code; new dealer is PENDING.
        """
        parent = make_dealer(referralCode="PARENT")
        user = make_user()

        with store.unit_of_work() as session:
            dealer = ReferralTree(session).insertDealer(user.userID, "parent")

        assert dealer.parentID == parent.dealerID
        assert dealer.status == DealerStatus.PENDING.value
        assert len(dealer.referralCode) == REFERRAL_CODE_LENGTH
        assert dealer.referralCode != parent.referralCode

    def test_insert_without_code_is_root(self, store, make_user):
        """
        TEST: No referral code → root dealer.
        """
        user = make_user()

        with store.unit_of_work() as session:
            dealer = ReferralTree(session).insertDealer(user.userID)

        assert dealer.parentID is None

    def test_insert_with_unapproved_parent_rolls_back(self, store, make_dealer, make_user):
        """
        TEST: Unapproved parent → InvalidState and no dealer row for the user.
        """
        make_dealer(status=DealerStatus.REJECTED.value, referralCode="REJCT1")
        user = make_user()

        with pytest.raises(InvalidState):
            with store.unit_of_work() as session:
                ReferralTree(session).insertDealer(user.userID, "REJCT1")

        assert store.read(lambda s: s.query(Dealer).filter_by(userID=user.userID).count()) == 0


# =============================================================================
# TEST CLASS: walkAncestors
# =============================================================================

class TestWalkAncestors:
    """Upward walk from a dealer, level 1 being the dealer itself."""

    def test_walk_is_bounded_by_max_levels(self, store, chain):
        """
        TEST: Four-level chain, maxLevels=3 → leaf, d3, d2.
        """
        root, d2, d3, leaf = chain

        assert walk(store, leaf.dealerID, 3) == [
            (leaf.dealerID, 1), (d3.dealerID, 2), (d2.dealerID, 3)
        ]

    def test_walk_stops_at_root(self, store, chain):
        """
        TEST: Walk from d2 with a large bound ends at root.
        """
        root, d2, _, _ = chain

        assert walk(store, d2.dealerID, 10) == [(d2.dealerID, 1), (root.dealerID, 2)]

    def test_walk_of_root_is_itself(self, store, chain):
        root = chain[0]
        assert walk(store, root.dealerID, 3) == [(root.dealerID, 1)]

    def test_walk_missing_dealer(self, store):
        """
        TEST: Unknown starting dealer → NotFound.
        """
        with pytest.raises(NotFound):
            walk(store, 404, 3)

    def test_cycle_terminates(self, store, chain):
        """
        TEST: Corrupted links root → leaf form a cycle; the walk visits each dealer once.
        """
        root, d2, d3, leaf = chain
        with store.unit_of_work() as session:
            session.execute(
                update(Dealer).where(Dealer.dealerID == root.dealerID).values(parentID=leaf.dealerID)
            )

        visited = walk(store, leaf.dealerID, 50)

        assert [dealerId for dealerId, _ in visited] == [
            leaf.dealerID, d3.dealerID, d2.dealerID, root.dealerID
        ]


# =============================================================================
# TEST CLASS: Downline
# =============================================================================

class TestDownline:
    """Children, descendants, subtree totals and the admin forest."""

    def test_descendants_breadth_first(self, store, chain, make_dealer):
        """
        TEST: walkDescendants lists every level below, with depth.
        """
        root, d2, d3, leaf = chain
        sibling = make_dealer(parent=root)

        result = store.read(
            lambda s: [(d.dealerID, depth) for d, depth in ReferralTree(s).walkDescendants(root.dealerID)]
        )

        assert result == [
            (d2.dealerID, 1), (sibling.dealerID, 1), (d3.dealerID, 2), (leaf.dealerID, 3)
        ]

    def test_descendants_depth_bound(self, store, chain):
        root, d2, _, _ = chain

        result = store.read(
            lambda s: [d.dealerID for d, _ in ReferralTree(s).walkDescendants(root.dealerID, maxDepth=1)]
        )

        assert result == [d2.dealerID]

    def test_aggregate_subtree(self, store, chain):
        """
        TEST: totalChildren counts all descendants; totalCommission includes the dealer itself.
        """
        root, d2, _, _ = chain

        summary = store.read(lambda s: ReferralTree(s).aggregateSubtree(d2.dealerID))

        assert summary["totalChildren"] == 2
        assert summary["totalCommission"] == Decimal("60.00")

    def test_build_forest(self, store, chain, make_dealer):
        """
        TEST: Forest nodes carry level and recursive totals.
        """
        root, d2, d3, leaf = chain
        other_root = make_dealer()

        forest = store.read(lambda s: ReferralTree(s).buildForest())

        assert [node["id"] for node in forest] == [root.dealerID, other_root.dealerID]
        top = forest[0]
        assert top["level"] == 0
        assert top["totalChildren"] == 3
        assert top["totalCommission"] == Decimal("100.00")
        assert top["children"][0]["id"] == d2.dealerID
        assert top["children"][0]["level"] == 1
        assert top["children"][0]["children"][0]["children"][0]["id"] == leaf.dealerID
        assert top["user"]["email"].startswith("dealer")
