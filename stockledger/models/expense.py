"""Expense model."""
from sqlalchemy import Column, BigInteger, String, Text, Numeric, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from stockledger.database import Base, BigIntPK
from stockledger.models.sale import DocumentStatus, PaymentMode


class Expense(Base):
    """Money paid out of a cash or bank account for running costs (rent, wages...)."""

    __tablename__ = 'expense'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    account_id = Column(BigInteger, ForeignKey('cash_account.id'), nullable=False, index=True)
    category = Column(String(100), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_mode = Column(Enum(PaymentMode, name='payment_mode'), nullable=False, default=PaymentMode.CASH)
    description = Column(Text, nullable=True)
    reference = Column(String(100), nullable=True)
    date = Column(DateTime(timezone=True), nullable=False)
    status = Column(Enum(DocumentStatus, name='document_status'), nullable=False, default=DocumentStatus.COMPLETED)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    account = relationship('CashAccount')

    def to_dict(self):
        return {
            'id': self.id,
            'account': self.account.code if self.account else None,
            'category': self.category,
            'amount': str(self.amount),
            'payment_mode': self.payment_mode.value,
            'description': self.description,
            'reference': self.reference,
            'date': self.date.isoformat() if self.date else None,
            'status': self.status.value,
        }

    def __repr__(self):
        return f"<Expense(id={self.id}, amount={self.amount}, status={self.status.value})>"
