"""Held Sale Line model."""
from sqlalchemy import Column, BigInteger, Integer, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from stockledger.database import Base, BigIntPK


class HeldSaleLine(Base):
    """One cart item of a held sale, stored as entered."""

    __tablename__ = 'held_sale_line'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    held_sale_id = Column(BigInteger, ForeignKey('held_sale.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(BigInteger, nullable=False)
    qty = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=True)
    discount = Column(Numeric(12, 2), default=0)

    # Relationships
    held_sale = relationship('HeldSale', back_populates='lines')

    def __repr__(self):
        return f"<HeldSaleLine(id={self.id}, product_id={self.product_id}, qty={self.qty})>"
