import enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class PaymentMethod(str, enum.Enum):
    CARD = "card"
    UPI = "upi"
    NETBANKING = "netbanking"
    COD = "cod"
    QRCODE = "qrcode"

    @property
    def server_value(self) -> str:
        return SERVER_PAYMENT_METHODS[self]

    @property
    def charged(self) -> bool:
        return self in (PaymentMethod.CARD, PaymentMethod.UPI, PaymentMethod.NETBANKING)


SERVER_PAYMENT_METHODS = {
    PaymentMethod.CARD: "Card",
    PaymentMethod.UPI: "UPI",
    PaymentMethod.NETBANKING: "Online",
    PaymentMethod.COD: "COD",
    PaymentMethod.QRCODE: "Online",
}


class Address(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    id: Optional[str] = None
    full_name: str = Field(..., min_length=1, alias="fullName")
    email: str = ""
    phone: str = Field(..., min_length=10)
    address_line1: str = Field(..., min_length=1, alias="addressLine1")
    address_line2: Optional[str] = Field(None, alias="addressLine2")
    landmark: Optional[str] = None
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=6, max_length=6, alias="postalCode")
    country: str = "India"


class CardData(BaseModel):
    holder_name: str = ""
    number: str = ""
    expiry_month: str = ""
    expiry_year: str = ""
    cvv: str = ""


class PaymentData(BaseModel):
    """Payment choice as posted by the client. Only `stored()` ever reaches storage."""
    selected_method: Optional[PaymentMethod] = None
    card: Optional[CardData] = None
    upi_id: Optional[str] = None
    bank_name: Optional[str] = None
    cod_confirmed: bool = False
    qrcode_confirmed: bool = False

    def stored(self) -> "StoredPayment":
        return StoredPayment(selected_method=self.selected_method, bank_name=self.bank_name,
                             cod_confirmed=self.cod_confirmed, qrcode_confirmed=self.qrcode_confirmed)


class StoredPayment(BaseModel):
    selected_method: Optional[PaymentMethod] = None
    bank_name: Optional[str] = None
    cod_confirmed: bool = False
    qrcode_confirmed: bool = False
    complete: bool = False
