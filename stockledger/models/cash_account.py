"""Cash Account model."""
from sqlalchemy import Column, String, Numeric, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from stockledger.database import Base, BigIntPK


class CashAccount(Base):
    """Named cash or bank account. Balance is derived from its postings."""

    __tablename__ = 'cash_account'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    opening_balance = Column(Numeric(12, 2), nullable=False, default=0, server_default='0.00')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    postings = relationship('CashPosting', back_populates='account')

    def __repr__(self):
        return f"<CashAccount(id={self.id}, code='{self.code}')>"
