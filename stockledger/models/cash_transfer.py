"""Cash Transfer model."""
from sqlalchemy import Column, BigInteger, Text, Numeric, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from stockledger.database import Base, BigIntPK
from stockledger.models.sale import DocumentStatus


class CashTransfer(Base):
    """Money moved from one cash/bank account to another (bank deposit, withdrawal)."""

    __tablename__ = 'cash_transfer'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    from_account_id = Column(BigInteger, ForeignKey('cash_account.id'), nullable=False)
    to_account_id = Column(BigInteger, ForeignKey('cash_account.id'), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(Text, nullable=True)
    date = Column(DateTime(timezone=True), nullable=False)
    status = Column(Enum(DocumentStatus, name='document_status'), nullable=False, default=DocumentStatus.COMPLETED)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    from_account = relationship('CashAccount', foreign_keys=[from_account_id])
    to_account = relationship('CashAccount', foreign_keys=[to_account_id])

    def to_dict(self):
        return {
            'id': self.id,
            'from_account': self.from_account.code if self.from_account else None,
            'to_account': self.to_account.code if self.to_account else None,
            'amount': str(self.amount),
            'description': self.description,
            'date': self.date.isoformat() if self.date else None,
            'status': self.status.value,
        }

    def __repr__(self):
        return f"<CashTransfer(id={self.id}, amount={self.amount}, status={self.status.value})>"
