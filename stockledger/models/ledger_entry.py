"""Party Ledger Entry model."""
from sqlalchemy import Column, BigInteger, Numeric, DateTime, String, Boolean, Enum, Index
from stockledger.database import Base, BigIntPK
from stockledger.models.stock_movement import DocumentType
import enum


class PartyType(enum.Enum):
    """Kind of party a ledger entry belongs to."""
    CUSTOMER = "CUSTOMER"
    SUPPLIER = "SUPPLIER"


class LedgerEntry(Base):
    """
    Debit/credit line on a customer or supplier account.

    Debit raises the outstanding balance (customer owes us, we owe the
    supplier); credit lowers it. Balances are folded from these rows in
    (date, id) order and never stored.
    """

    __tablename__ = 'ledger_entry'
    __table_args__ = (
        Index('ix_ledger_entry_party', 'party_type', 'party_id', 'date'),
        Index('ix_ledger_entry_reference', 'reference_type', 'reference_id'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    party_type = Column(Enum(PartyType, name='party_type'), nullable=False)
    party_id = Column(BigInteger, nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    debit = Column(Numeric(12, 2), nullable=False, default=0)
    credit = Column(Numeric(12, 2), nullable=False, default=0)
    reference_type = Column(Enum(DocumentType, name='document_type'), nullable=True)
    reference_id = Column(BigInteger, nullable=True)
    description = Column(String(255), nullable=True)
    is_reversal = Column(Boolean, nullable=False, default=False, server_default='0')

    def __repr__(self):
        return (f"<LedgerEntry(id={self.id}, party={self.party_type.value}:{self.party_id}, "
                f"debit={self.debit}, credit={self.credit})>")
