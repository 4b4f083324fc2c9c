import hashlib
from decimal import Decimal
from typing import Any
import orjson


def build_key(*parts: str) -> str:
    joined = ":".join(p for p in parts if p is not None and p != "")
    if len(joined) > 200:
        return hashlib.sha256(joined.encode()).hexdigest()
    return joined


def _default(obj: Any):
    # money stays exact in storage
    if isinstance(obj, Decimal):
        return str(obj)
    raise TypeError(f"{type(obj).__name__} is not serializable")


def serialize(value: Any) -> str:
    return orjson.dumps(value, default=_default).decode()


def deserialize(raw: str) -> Any:
    return orjson.loads(raw)


def fingerprint(secret: str) -> str:
    """Stable short digest, usable in keys without leaking the secret."""
    return hashlib.sha256(secret.encode()).hexdigest()[:16]
