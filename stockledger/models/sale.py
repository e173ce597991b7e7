"""Sale model."""
from sqlalchemy import Column, BigInteger, String, Text, Numeric, DateTime, Boolean, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from stockledger.database import Base, BigIntPK
import enum


class DocumentStatus(enum.Enum):
    """Lifecycle of a committed sale or purchase."""
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentMode(enum.Enum):
    """How a document was settled."""
    CASH = "CASH"
    BANK = "BANK"
    CREDIT = "CREDIT"


class Sale(Base):
    """Sale (or sale return when ``is_return`` is set)."""

    __tablename__ = 'sale'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    invoice_no = Column(String(32), nullable=False, unique=True)
    customer_id = Column(BigInteger, ForeignKey('customer.id'), nullable=True)
    date = Column(DateTime(timezone=True), nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False)
    paid = Column(Numeric(12, 2), nullable=False, default=0)
    due = Column(Numeric(12, 2), nullable=False, default=0)
    # Cash handed back to the customer, never posted anywhere
    change = Column(Numeric(12, 2), nullable=False, default=0)
    # Part of the cash received that settled the customer's prior balance
    collected = Column(Numeric(12, 2), nullable=False, default=0)
    payment_mode = Column(Enum(PaymentMode, name='payment_mode'), nullable=False, default=PaymentMode.CASH)
    status = Column(Enum(DocumentStatus, name='document_status'), nullable=False, default=DocumentStatus.COMPLETED)
    is_return = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    customer = relationship('Customer', back_populates='sales')
    lines = relationship('SaleLine', back_populates='sale', cascade='all, delete-orphan',
                         order_by='SaleLine.id')

    def to_dict(self):
        return {
            'id': self.id,
            'invoice_no': self.invoice_no,
            'customer_id': self.customer_id,
            'date': self.date.isoformat() if self.date else None,
            'subtotal': str(self.subtotal),
            'discount': str(self.discount),
            'tax': str(self.tax),
            'total': str(self.total),
            'paid': str(self.paid),
            'due': str(self.due),
            'change': str(self.change),
            'collected': str(self.collected),
            'payment_mode': self.payment_mode.value,
            'status': self.status.value,
            'is_return': self.is_return,
            'notes': self.notes,
            'lines': [line.to_dict() for line in self.lines],
        }

    def __repr__(self):
        return f"<Sale(id={self.id}, invoice_no='{self.invoice_no}', total={self.total}, status={self.status.value})>"
