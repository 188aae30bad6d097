"""
Database models for PropMarket.
Import all models here for easy access.
"""

# Base and mixins
from models.base import Base, AuditMixin

# Core models
from models.user import User
from models.dealer import Dealer
from models.property import Property
from models.booking import Booking
from models.commission import Commission, CommissionConfig

# Event listeners
from models.listeners import register_all_listeners

__all__ = [
    # Base
    'Base',
    'AuditMixin',

    # Core
    'User',
    'Dealer',
    'Property',
    'Booking',
    'Commission',
    'CommissionConfig',

    # Listeners
    'register_all_listeners',
]
