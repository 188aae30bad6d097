"""
Property model - a bookable listing.
Only the availability flag and pricing are owned by the booking core.
"""
from sqlalchemy import Column, Integer, String, DECIMAL, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin
from models.enums import PropertyStatus


class Property(Base, AuditMixin):
    __tablename__ = 'properties'

    propertyID = Column(Integer, primary_key=True, autoincrement=True)

    title = Column(String, nullable=False)
    price = Column(DECIMAL(14, 2), nullable=False, default=0)

    status = Column(String(16), nullable=False, default=PropertyStatus.FREE.value, index=True)  # FREE, BOOKED, SOLD

    # Listing owner (external actor) and the dealer credited with the sale
    ownerID = Column(Integer, ForeignKey('users.userID'), nullable=True)
    dealerID = Column(Integer, ForeignKey('dealers.dealerID'), nullable=True, index=True)

    # Relationships
    dealer = relationship('Dealer', foreign_keys=[dealerID], lazy='joined')
    bookings = relationship('Booking', back_populates='property')

    def __repr__(self):
        return f"<Property(propertyID={self.propertyID}, status={self.status}, price={self.price})>"
