from pydantic import BaseModel, ConfigDict, EmailStr, Field

from storefront.schemas.base import BaseResponseSchema, BaseCreateSchema
from typing import Optional, List, Any, Dict
from datetime import datetime
from decimal import Decimal
import uuid

from storefront.models.order import OrderStatus


class ShippingDetails(BaseModel):
    """Shipping address snapshot. Carrier fields are passed through untouched."""
    model_config = ConfigDict(extra="allow", str_strip_whitespace=True)

    full_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    address: str = Field(..., min_length=1)
    city: Optional[str] = None
    postal_code: Optional[str] = None


class OrderItemInput(BaseCreateSchema):
    id: Optional[str] = None
    sku: Optional[str] = None
    name: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(..., ge=1)


class OrderTotals(BaseCreateSchema):
    """Client-asserted totals; stored as given."""
    subtotal: Decimal = Field(..., ge=0)
    shipping_fee: Decimal = Field(..., ge=0)
    total: Decimal = Field(..., ge=0)
    currency: Optional[str] = Field(None, max_length=8)


class OrderCreate(BaseCreateSchema):
    payment_method: Optional[str] = Field(None, max_length=64)
    user_id: Optional[str] = Field(None, max_length=64)
    totals: OrderTotals
    shipping: ShippingDetails
    items: List[OrderItemInput] = Field(..., min_length=1)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderResponse(BaseResponseSchema):
    id: uuid.UUID
    number: str
    status: str
    payment_method: Optional[str] = None
    user_id: Optional[str] = None
    items: List[Dict[str, Any]]
    totals: Dict[str, Any]
    shipping: Dict[str, Any]
    created_at: datetime
    updated_at: datetime


class OrderListResponse(BaseModel):
    items: List[OrderResponse]
    total: int
    page: int
    size: int
    pages: int
