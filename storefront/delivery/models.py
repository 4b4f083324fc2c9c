import enum
from decimal import Decimal
from typing import Annotated, Any, Optional
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, computed_field
from storefront.cart.models import TextId
from storefront.common.formatters import format_delivery_price, parse_price


class DeliveryCategory(str, enum.Enum):
    SAME_DAY = "same_day"
    EXPRESS = "express"
    NEXT_DAY = "next_day"
    STANDARD = "standard"


def _category_or_none(value: Any) -> Any:
    # unknown categories from the catalog fall back to name matching
    if isinstance(value, str):
        try:
            return DeliveryCategory(value.strip().lower().replace("-", "_").replace(" ", "_"))
        except ValueError:
            return None
    return value


Price = Annotated[Decimal, BeforeValidator(lambda v: parse_price(v))]


class DeliveryOption(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: TextId
    name: str
    price: Price = Decimal(0)
    estimated_days: Annotated[str, BeforeValidator(lambda v: "" if v is None else str(v))] = Field(
        "", alias="estimatedDays")
    category: Annotated[Optional[DeliveryCategory], BeforeValidator(_category_or_none)] = None

    @computed_field
    @property
    def description(self) -> str:
        return f"{self.name} delivery within {self.estimated_days}"

    @computed_field
    @property
    def display_price(self) -> str:
        return format_delivery_price(self.price)


class DeliverySelectionIn(BaseModel):
    option_id: TextId
    distance_km: Optional[float] = Field(None, ge=0)
