"""
Dealer model - node of the referral forest.
parentID is fixed at creation; commission is a running total of the Commission ledger.
"""
from sqlalchemy import Column, Integer, String, DECIMAL, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin
from models.enums import DealerStatus


class Dealer(Base, AuditMixin):
    __tablename__ = 'dealers'

    dealerID = Column(Integer, primary_key=True, autoincrement=True)

    userID = Column(Integer, ForeignKey('users.userID'), nullable=False, unique=True)

    referralCode = Column(String(16), nullable=False, unique=True, index=True)
    status = Column(String(16), nullable=False, default=DealerStatus.PENDING.value)  # PENDING, APPROVED, REJECTED

    # Referrer (NULL for tree roots)
    parentID = Column(Integer, ForeignKey('dealers.dealerID'), nullable=True, index=True)

    # Running total, must equal SUM(Commission.amount) for this dealer
    commission = Column(DECIMAL(14, 2), nullable=False, default=0)

    # Relationships
    user = relationship('User', lazy='joined')
    parent = relationship('Dealer', remote_side=[dealerID], back_populates='children')
    children = relationship('Dealer', back_populates='parent')

    def __repr__(self):
        return f"<Dealer(dealerID={self.dealerID}, code={self.referralCode}, parent={self.parentID})>"
