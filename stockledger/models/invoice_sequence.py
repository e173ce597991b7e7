"""Invoice number sequence model."""
from sqlalchemy import Column, BigInteger, String
from stockledger.database import Base


class InvoiceSequence(Base):
    """Last number issued for a prefix+period (e.g. ``INV202610``)."""

    __tablename__ = 'invoice_sequence'

    name = Column(String(32), primary_key=True)
    last_value = Column(BigInteger, nullable=False, default=0)

    def __repr__(self):
        return f"<InvoiceSequence(name='{self.name}', last_value={self.last_value})>"
