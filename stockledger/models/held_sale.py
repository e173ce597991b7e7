"""Held Sale model (suspended cart)."""
from sqlalchemy import Column, BigInteger, String, Text, Numeric, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from stockledger.database import Base, BigIntPK


class HeldSale(Base):
    """
    Held Sale - a cart put on hold at the POS.

    Stored without validation and with no stock, ledger or cash effect.
    Resuming it returns the cart as a draft and deletes the row.
    """

    __tablename__ = 'held_sale'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    customer_id = Column(BigInteger, nullable=True)  # checked on confirm
    discount = Column(Numeric(12, 2), default=0)
    payment_mode = Column(String(10), nullable=False, default='CASH')
    cash_received = Column(Numeric(12, 2), default=0)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    lines = relationship('HeldSaleLine', back_populates='held_sale', cascade='all, delete-orphan',
                         order_by='HeldSaleLine.id')

    def __repr__(self):
        return f"<HeldSale(id={self.id}, customer_id={self.customer_id})>"
