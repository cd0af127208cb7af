"""
Registros brutos lidos do banco hospedado.
São somente leitura para o motor de métricas; validados na borda de acesso a dados.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Annotated, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class DeliveryStatus(str, Enum):
    UNREAD = "unread"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    OUT_OF_STOCK = "out_of_stock"


PENDING_DELIVERY_STATUSES = frozenset({
    DeliveryStatus.UNREAD,
    DeliveryStatus.PREPARING,
    DeliveryStatus.OUT_FOR_DELIVERY,
})
TERMINAL_DELIVERY_STATUSES = frozenset({DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED})
PROBLEM_DELIVERY_STATUSES = frozenset({DeliveryStatus.CANCELLED, DeliveryStatus.OUT_OF_STOCK})


def _as_str(value: Any) -> Any:
    # UUIDs e inteiros vindos do SQL viram texto, como na API REST
    return value if value is None or isinstance(value, str) else str(value)


RecordId = Annotated[str, BeforeValidator(_as_str)]
OptionalRecordId = Annotated[Optional[str], BeforeValidator(_as_str)]


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class SaleRecord(_Record):
    id: RecordId
    sale_date: datetime
    total_amount: Decimal = Field(default=Decimal(0), ge=0)
    discount_amount: Decimal = Field(default=Decimal(0), ge=0)
    final_amount: Decimal = Field(ge=0)
    # métodos desconhecidos são tolerados; só entram no histograma
    payment_method: str = ""
    payment_status: PaymentStatus
    client_id: OptionalRecordId = None
    marked_for_delivery: bool = False
    delivery_status: Optional[DeliveryStatus] = None
    created_at: datetime

    @property
    def is_cancelled(self) -> bool:
        return self.payment_status is PaymentStatus.CANCELLED


class EmbeddedSale(_Record):
    """Projeção rasa de ``sales(sale_date, payment_status)`` embutida nos itens."""

    sale_date: datetime
    payment_status: PaymentStatus


class SaleItemRecord(_Record):
    sale_id: RecordId
    product_id: RecordId
    product_name: str
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(default=Decimal(0), ge=0)
    subtotal: Decimal = Field(ge=0)
    sale: Optional[EmbeddedSale] = Field(default=None, alias="sales")

    @property
    def counts_as_sold(self) -> bool:
        """Only items whose parent sale is known and not cancelled are counted."""
        return self.sale is not None and self.sale.payment_status is not PaymentStatus.CANCELLED


class ProductRecord(_Record):
    id: RecordId
    code: str = Field(default="", alias="codigo")
    name: str = Field(default="", alias="nome")
    price: Decimal = Field(default=Decimal(0), ge=0)
    stock: int = Field(default=0, ge=0)
    active: bool = True
    category_id: OptionalRecordId = None
    created_at: Optional[datetime] = None


class ClientRecord(_Record):
    id: RecordId
    name: str = ""
    active: bool = True
    created_at: datetime


class PromotionRecord(_Record):
    product_id: RecordId
    original_price: Decimal = Field(ge=0)
    promotional_price: Decimal = Field(ge=0)
    active: bool = True

    @property
    def unit_savings(self) -> Decimal:
        return max(self.original_price - self.promotional_price, Decimal(0))


class CategoryRecord(_Record):
    id: RecordId
    name: str
