"""Supplier model."""
from sqlalchemy import Column, String, Text, DateTime, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from stockledger.database import Base, BigIntPK


class Supplier(Base):
    """Supplier."""

    __tablename__ = 'supplier'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    opening_balance = Column(Numeric(12, 2), nullable=False, default=0, server_default='0.00')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    purchases = relationship('Purchase', back_populates='supplier')

    def __repr__(self):
        return f"<Supplier(id={self.id}, name='{self.name}')>"
