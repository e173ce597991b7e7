"""Purchase model."""
from sqlalchemy import Column, BigInteger, String, Text, Numeric, DateTime, Boolean, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from stockledger.database import Base, BigIntPK
from stockledger.models.sale import DocumentStatus, PaymentMode


class Purchase(Base):
    """Purchase from a supplier (or purchase return when ``is_return`` is set)."""

    __tablename__ = 'purchase'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    invoice_no = Column(String(32), nullable=False, unique=True)
    supplier_id = Column(BigInteger, ForeignKey('supplier.id'), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False)
    paid = Column(Numeric(12, 2), nullable=False, default=0)
    due = Column(Numeric(12, 2), nullable=False, default=0)
    # Part of the payment that settled the supplier's prior balance
    settled = Column(Numeric(12, 2), nullable=False, default=0)
    payment_mode = Column(Enum(PaymentMode, name='payment_mode'), nullable=False, default=PaymentMode.CASH)
    status = Column(Enum(DocumentStatus, name='document_status'), nullable=False, default=DocumentStatus.COMPLETED)
    is_return = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    supplier = relationship('Supplier', back_populates='purchases')
    lines = relationship('PurchaseLine', back_populates='purchase', cascade='all, delete-orphan',
                         order_by='PurchaseLine.id')

    def to_dict(self):
        return {
            'id': self.id,
            'invoice_no': self.invoice_no,
            'supplier_id': self.supplier_id,
            'date': self.date.isoformat() if self.date else None,
            'subtotal': str(self.subtotal),
            'discount': str(self.discount),
            'tax': str(self.tax),
            'total': str(self.total),
            'paid': str(self.paid),
            'due': str(self.due),
            'settled': str(self.settled),
            'payment_mode': self.payment_mode.value,
            'status': self.status.value,
            'is_return': self.is_return,
            'notes': self.notes,
            'lines': [line.to_dict() for line in self.lines],
        }

    def __repr__(self):
        return f"<Purchase(id={self.id}, invoice_no='{self.invoice_no}', status={self.status.value})>"
