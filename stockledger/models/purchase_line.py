"""Purchase Line model."""
from sqlalchemy import Column, BigInteger, Integer, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from stockledger.database import Base, BigIntPK


class PurchaseLine(Base):
    """Purchase Line."""

    __tablename__ = 'purchase_line'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    purchase_id = Column(BigInteger, ForeignKey('purchase.id'), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey('product.id'), nullable=False)
    qty = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)  # supplier unit cost
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    line_total = Column(Numeric(12, 2), nullable=False)
    unit_cost = Column(Numeric(12, 2), nullable=False, default=0)

    # Relationships
    purchase = relationship('Purchase', back_populates='lines')
    product = relationship('Product')

    def to_dict(self):
        return {
            'product_id': self.product_id,
            'qty': self.qty,
            'unit_price': str(self.unit_price),
            'discount': str(self.discount),
            'tax_rate': str(self.tax_rate),
            'tax': str(self.tax),
            'line_total': str(self.line_total),
            'unit_cost': str(self.unit_cost),
        }

    def __repr__(self):
        return f"<PurchaseLine(id={self.id}, product_id={self.product_id}, qty={self.qty})>"
