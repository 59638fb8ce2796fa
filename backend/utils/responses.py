from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core.config import settings

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def _serialize(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(by_alias=True, mode="json")
    if isinstance(data, (list, tuple)):
        return [_serialize(item) for item in data]
    if isinstance(data, dict):
        return {key: _serialize(value) for key, value in data.items()}
    return jsonable_encoder(data)


def envelope(message: str, data: Any = None) -> dict:
    """Success body: {"message": ..., "data": ...} with camelCase model fields."""
    return {"message": message, "data": _serialize(data)}


def no_store_json(data, status_code: int = 200):
    """Return JSONResponse with no-store caching headers."""
    return JSONResponse(content=data, status_code=status_code, headers=NO_STORE_HEADERS)


def set_auth_cookies(response: JSONResponse, access_token: str, refresh_token: str,
                     access_max_age: int, refresh_max_age: int) -> JSONResponse:
    options = {"httponly": True, "secure": settings.COOKIE_SECURE, "samesite": settings.COOKIE_SAMESITE}
    response.set_cookie(ACCESS_COOKIE, access_token, max_age=access_max_age, **options)
    response.set_cookie(REFRESH_COOKIE, refresh_token, max_age=refresh_max_age, **options)
    return response


def clear_auth_cookies(response: JSONResponse) -> JSONResponse:
    options = {"httponly": True, "secure": settings.COOKIE_SECURE, "samesite": settings.COOKIE_SAMESITE}
    response.delete_cookie(ACCESS_COOKIE, **options)
    response.delete_cookie(REFRESH_COOKIE, **options)
    return response


def auth_json(data, status_code: int = 200, tokens: Optional[tuple] = None, max_ages: Optional[tuple] = None,
              clear: bool = False) -> JSONResponse:
    """no-store JSON response that sets or clears the session cookies."""
    response = no_store_json(data, status_code=status_code)
    if tokens:
        set_auth_cookies(response, tokens[0], tokens[1], max_ages[0], max_ages[1])
    elif clear:
        clear_auth_cookies(response)
    return response
