from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field
from storefront.cart.models import TextId


class UserData(BaseModel):
    """Identity handed to the session store on sign-in."""
    id: TextId
    email: str
    name: str = ""
    token: str = ""

    @classmethod
    def from_signin_payload(cls, payload: Dict[str, Any]) -> "UserData":
        user = payload.get("user") or {}
        name = user.get("name") or " ".join(
            p for p in (user.get("firstname") or user.get("firstName"),
                        user.get("lastname") or user.get("lastName")) if p)
        token = payload.get("token") or user.get("token") or ""
        return cls(id=user.get("id", ""), email=user.get("email", ""), name=name, token=token)


class StoredUserInfo(BaseModel):
    """Record kept under `user_session` in both storage tiers (the token stays in its cookie)."""
    model_config = ConfigDict(populate_by_name=True)

    id: TextId
    email: str
    name: str = ""
    last_updated: str = Field(..., alias="lastUpdated")
    session_id: str = Field(..., alias="sessionId")


class UserSession(BaseModel):
    id: str
    email: str
    name: str = ""
    session_id: str
    auth_token: str
    last_updated: str

    def public(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"auth_token"})


class AuthEvent(BaseModel):
    type: str
    timestamp: int
    session_id: Optional[str] = None


# request bodies

class SignInIn(BaseModel):
    email: str = Field(..., examples=["user@example.com"])
    password: str = Field(...)


class SignUpIn(BaseModel):
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    email: str = ""
    phone: str = ""
    password: str = ""
    confirm_password: str = Field("", alias="confirmPassword")
    country_code: str = Field("+91", alias="countryCode")

    model_config = ConfigDict(populate_by_name=True)
