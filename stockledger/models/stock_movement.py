"""Stock Movement model."""
from sqlalchemy import Column, BigInteger, Integer, Numeric, DateTime, Text, Boolean, Enum, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from stockledger.database import Base, BigIntPK
import enum


class MovementKind(enum.Enum):
    """Why stock moved."""
    OPENING = "OPENING"
    PURCHASE = "PURCHASE"
    PURCHASE_RETURN = "PURCHASE_RETURN"
    SALE = "SALE"
    SALE_RETURN = "SALE_RETURN"
    ADJUSTMENT = "ADJUSTMENT"


class DocumentType(enum.Enum):
    """Document a movement, ledger entry or cash posting belongs to."""
    SALE = "SALE"
    PURCHASE = "PURCHASE"
    ADJUSTMENT = "ADJUSTMENT"
    OPENING = "OPENING"
    COLLECTION = "COLLECTION"
    SUPPLIER_PAYMENT = "SUPPLIER_PAYMENT"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"


class StockMovement(Base):
    """
    One signed stock change for a product.

    Positive qty is stock in, negative is stock out. Rows are never
    edited: a reversal writes a compensating row (``is_reversal``) and
    stamps ``reversed_at`` on the row it undoes.
    """

    __tablename__ = 'stock_movement'
    __table_args__ = (
        Index('ix_stock_movement_reference', 'reference_type', 'reference_id'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    product_id = Column(BigInteger, ForeignKey('product.id'), nullable=False, index=True)
    qty = Column(Integer, nullable=False)
    unit_cost = Column(Numeric(12, 2), nullable=False, default=0)
    kind = Column(Enum(MovementKind, name='movement_kind'), nullable=False)
    reference_type = Column(Enum(DocumentType, name='document_type'), nullable=True)
    reference_id = Column(BigInteger, nullable=True)
    notes = Column(Text, nullable=True)
    is_reversal = Column(Boolean, nullable=False, default=False, server_default='0')
    reversal_of_id = Column(BigInteger, ForeignKey('stock_movement.id'), nullable=True)
    reversed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    product = relationship('Product')

    def __repr__(self):
        return f"<StockMovement(id={self.id}, product_id={self.product_id}, qty={self.qty}, kind={self.kind.value})>"
