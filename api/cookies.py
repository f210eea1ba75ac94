"""
httpOnly auth cookies. Lifetimes follow the token codec TTLs.
"""
from flask import current_app

from utils.decorators import ACCESS_COOKIE

REFRESH_COOKIE = "refresh_token"


def set_auth_cookies(response, tokens):
    codec = current_app.extensions["auth"].codec
    secure = current_app.config.get("COOKIE_SECURE", False)
    response.set_cookie(
        ACCESS_COOKIE,
        tokens.access_token,
        max_age=int(codec.access_ttl.total_seconds()),
        httponly=True,
        secure=secure,
        samesite="Strict",
    )
    response.set_cookie(
        REFRESH_COOKIE,
        tokens.refresh_token,
        max_age=int(codec.refresh_ttl.total_seconds()),
        httponly=True,
        secure=secure,
        samesite="Strict",
    )
    return response


def clear_auth_cookies(response):
    response.delete_cookie(ACCESS_COOKIE)
    response.delete_cookie(REFRESH_COOKIE)
    return response
