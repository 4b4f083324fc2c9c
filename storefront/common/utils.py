from datetime import datetime,timezone
from typing import Any, Dict, Optional, Union

from fastapi.responses import JSONResponse
from storefront.common.constants import request_id_ctx


def now() -> datetime:
    return datetime.now(timezone.utc)


def _envelope(status: str, data: Any, error: Optional[Dict[str, Any]],
              request_id: Optional[str]) -> Dict[str, Any]:
    return {
        "status": status,
        "data": data,
        "error": error,
        "request_id": request_id if request_id is not None else request_id_ctx.get(),
    }


def build_success(data: Any, request_id: Optional[str] = None) -> Dict[str, Any]:
    return _envelope("ok", data, None, request_id)


def build_error(code: Union[str, int] = "UNKNOWN_ERROR", details: Optional[Any] = None,
                request_id: Optional[str] = None) -> Dict[str, Any]:
    return _envelope("error", None, {"code": code, "details": details}, request_id)


def json_error(content: Dict[str, Any], status_code: int = 500, headers=None) -> JSONResponse:
    return JSONResponse(content, status_code=status_code, headers=headers)


def success(data: Any) -> Dict[str, Any]:
    # plain dict, not a JSONResponse, so cookies set on the injected Response are kept
    return build_success(data)
