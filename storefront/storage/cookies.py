from typing import Dict, Mapping, Optional
from starlette.responses import Response

DAY_SECONDS = 24 * 60 * 60


class CookieJar:
    """Minimal cookie access used by the session store.

    Setting a cookie with a non-positive retention expires it, the way a
    past `expires` date does in a browser.
    """

    def get(self, name: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, name: str, value: str, *, days: int = 7, secure: bool = True,
            samesite: str = "lax", httponly: bool = False, path: str = "/") -> None:
        raise NotImplementedError

    def delete(self, name: str, path: str = "/") -> None:
        raise NotImplementedError


class MemoryCookieJar(CookieJar):

    def __init__(self, values: Optional[Dict[str, str]] = None):
        self.values: Dict[str, str] = dict(values or {})
        self.attributes: Dict[str, dict] = {}

    def get(self, name: str) -> Optional[str]:
        return self.values.get(name)

    def set(self, name: str, value: str, *, days: int = 7, secure: bool = True,
            samesite: str = "lax", httponly: bool = False, path: str = "/") -> None:
        if days <= 0:
            self.delete(name, path=path)
            return
        self.values[name] = value
        self.attributes[name] = {"max_age": days * DAY_SECONDS, "secure": secure,
                                 "samesite": samesite, "httponly": httponly, "path": path}

    def delete(self, name: str, path: str = "/") -> None:
        self.values.pop(name, None)
        self.attributes.pop(name, None)


class ResponseCookieJar(CookieJar):
    """Reads the request's cookies and writes changes onto the outgoing response.

    Writes are visible to later reads in the same request.
    """

    def __init__(self, request_cookies: Mapping[str, str], response: Response):
        self._values: Dict[str, str] = dict(request_cookies)
        self.response = response

    def get(self, name: str) -> Optional[str]:
        return self._values.get(name)

    def set(self, name: str, value: str, *, days: int = 7, secure: bool = True,
            samesite: str = "lax", httponly: bool = False, path: str = "/") -> None:
        if days <= 0:
            self.delete(name, path=path)
            return
        self._values[name] = value
        self.response.set_cookie(name, value, max_age=days * DAY_SECONDS, path=path,
                                 secure=secure, httponly=httponly, samesite=samesite)

    def delete(self, name: str, path: str = "/") -> None:
        self._values.pop(name, None)
        self.response.delete_cookie(name, path=path)
