from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from storefront.cart.models import TextId
from storefront.delivery.models import Price


class OrderItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[TextId] = None
    name: str = Field("", alias="productName")
    quantity: int = 1
    price: Price = Decimal(0)


class Order(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: TextId
    order_number: Optional[str] = Field(None, alias="orderNumber")
    customer_name: Optional[str] = Field(None, alias="customerName")
    email: Optional[str] = None
    phone: Optional[str] = None
    status: str = "pending"
    total: Price = Decimal(0)
    created_at: Optional[str] = Field(None, alias="createdAt")
    delivery_address: Optional[str] = Field(None, alias="deliveryAddress")
    payment_method: Optional[str] = Field(None, alias="paymentMethod")
    payment_status: Optional[str] = Field(None, alias="paymentStatus")
    estimated_delivery_date: Optional[str] = Field(None, alias="estimatedDeliveryDate")
    items: List[OrderItem] = Field(default_factory=list)
