"""Customer model."""
from sqlalchemy import Column, String, Text, DateTime, Boolean, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from stockledger.database import Base, BigIntPK


class Customer(Base):
    """Customer."""

    __tablename__ = 'customer'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    # Walk-in customers never get ledger postings. Fixed at creation.
    is_walk_in = Column(Boolean, nullable=False, default=False, server_default='0')
    opening_balance = Column(Numeric(12, 2), nullable=False, default=0, server_default='0.00')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    sales = relationship('Sale', back_populates='customer')

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}', is_walk_in={self.is_walk_in})>"
