"""Cash Posting model."""
from sqlalchemy import Column, BigInteger, Numeric, DateTime, String, Boolean, Enum, ForeignKey, Index
from sqlalchemy.orm import relationship
from stockledger.database import Base, BigIntPK
from stockledger.models.stock_movement import DocumentType


class CashPosting(Base):
    """Signed movement of money in or out of a cash account."""

    __tablename__ = 'cash_posting'
    __table_args__ = (
        Index('ix_cash_posting_reference', 'reference_type', 'reference_id'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    account_id = Column(BigInteger, ForeignKey('cash_account.id'), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    reference_type = Column(Enum(DocumentType, name='document_type'), nullable=True)
    reference_id = Column(BigInteger, nullable=True)
    description = Column(String(255), nullable=True)
    is_reversal = Column(Boolean, nullable=False, default=False, server_default='0')

    # Relationships
    account = relationship('CashAccount', back_populates='postings')

    def __repr__(self):
        return f"<CashPosting(id={self.id}, account_id={self.account_id}, amount={self.amount})>"
