from decimal import Decimal
from typing import Annotated, Any, Dict, Literal, Optional
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from storefront.common.formatters import parse_price


def _as_text(value: Any) -> Any:
    # shop api ids arrive as numbers or strings
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value

TextId = Annotated[str, BeforeValidator(_as_text)]


class Product(BaseModel):
    """Catalog product as served by the shop api (only the fields the cart reads are typed)."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: TextId
    name: str
    price: Any = 0
    category: Optional[str] = None
    image: Optional[str] = None
    description: Optional[str] = None
    in_stock: Optional[bool] = Field(None, alias="inStock")


class CartLine(BaseModel):
    product_id: TextId
    name: str
    unit_price: Decimal = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    category: Optional[str] = None
    image_ref: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @classmethod
    def from_product(cls, product: Product, quantity: int) -> "CartLine":
        unit_price = parse_price(product.price, item_ref=product.id)
        return cls(product_id=product.id, name=product.name, unit_price=max(unit_price, Decimal(0)),
                   quantity=quantity, category=product.category, image_ref=product.image)

    @classmethod
    def from_server_item(cls, item: Dict[str, Any]) -> "CartLine":
        # server cart rows come nested ({product, quantity}) or flat (product fields + quantity)
        product = item.get("product") if isinstance(item.get("product"), dict) else item
        return cls.from_product(Product.model_validate(product), item.get("quantity", 1))


class AppliedCoupon(BaseModel):
    code: str
    description: Optional[str] = None
    discount_amount: Decimal = Field(Decimal(0), ge=0)
    id: Optional[TextId] = None
    type: Optional[str] = None
    value: Optional[Decimal] = None
    max_discount: Optional[Decimal] = None

    def discount_for(self, subtotal: Decimal) -> Decimal:
        """Discount this coupon grants on `subtotal`.

        Percentage coupons scale with the subtotal (capped by max_discount),
        fixed coupons never exceed it, anything else keeps the amount the shop
        quoted when the coupon was applied.
        """
        if self.type == "percentage" and self.value is not None:
            discount = subtotal * self.value / 100
            if self.max_discount and discount > self.max_discount:
                discount = self.max_discount
            return max(discount, Decimal(0))
        if self.type == "fixed" and self.value is not None:
            return max(min(self.value, subtotal), Decimal(0))
        return self.discount_amount


class CouponDecision(BaseModel):
    accepted: bool
    kind: Literal["accepted", "validation", "business"]
    code: str = ""
    reason: Optional[str] = None
    coupon: Optional[AppliedCoupon] = None


class CouponApplyResult(BaseModel):
    success: bool
    discount_amount: Optional[Decimal] = None
    kind: Literal["accepted", "validation", "business", "transport"] = "accepted"
    message: Optional[str] = None


# request bodies

class AddItemIn(BaseModel):
    product_id: TextId
    quantity: int = Field(1, ge=1)


class UpdateQuantityIn(BaseModel):
    quantity: int


class ApplyCouponIn(BaseModel):
    code: str
