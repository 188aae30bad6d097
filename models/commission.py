"""
Commission ledger and per-level commission configuration.
"""
from sqlalchemy import Column, Integer, DECIMAL, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin


class CommissionConfig(Base, AuditMixin):
    """Global level -> percentage table, admin-editable."""
    __tablename__ = 'commission_config'

    configID = Column(Integer, primary_key=True, autoincrement=True)
    level = Column(Integer, nullable=False, unique=True)
    percentage = Column(DECIMAL(5, 2), nullable=False)

    def __repr__(self):
        return f"<CommissionConfig(level={self.level}, percentage={self.percentage})>"


class Commission(Base, AuditMixin):
    """Append-only commission entry; never updated after insert."""
    __tablename__ = 'commissions'

    commissionID = Column(Integer, primary_key=True, autoincrement=True)

    dealerID = Column(Integer, ForeignKey('dealers.dealerID'), nullable=False, index=True)
    propertyID = Column(Integer, ForeignKey('properties.propertyID'), nullable=False)
    bookingID = Column(Integer, ForeignKey('bookings.bookingID'), nullable=True)

    amount = Column(DECIMAL(14, 2), nullable=False)
    level = Column(Integer, nullable=False)  # 1 = direct dealer

    # Relationships
    dealer = relationship('Dealer')

    def __repr__(self):
        return f"<Commission(dealer={self.dealerID}, level={self.level}, amount={self.amount})>"
