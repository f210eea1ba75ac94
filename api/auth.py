"""
Authentication blueprint:
- POST /auth/signup
- POST /auth/signin
- POST /auth/refresh-token
- POST /auth/signout
- POST /auth/forgot-password
- POST /auth/reset-password/verify
- POST /auth/reset-password
- POST /auth/token/verify

Handlers only parse input, call the session/reset managers kept on
app.extensions["auth"], and shape the response. Domain errors raised by the
managers are rendered by the handlers in api.errors.
"""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from models.schemas.user import (
    ForgotPasswordSchema,
    RefreshTokenSchema,
    ResetPasswordSchema,
    ResetTokenSchema,
    SignInSchema,
    SignUpSchema,
    TokenPairOutSchema,
    TokenVerifySchema,
    UserOutSchema,
)
from utils.tokens import TokenError

from .cookies import REFRESH_COOKIE, clear_auth_cookies, set_auth_cookies

bp = Blueprint("auth", __name__)

sign_up_schema = SignUpSchema()
sign_in_schema = SignInSchema()
refresh_token_schema = RefreshTokenSchema()
forgot_password_schema = ForgotPasswordSchema()
reset_token_schema = ResetTokenSchema()
reset_password_schema = ResetPasswordSchema()
token_verify_schema = TokenVerifySchema()
user_out_schema = UserOutSchema()
token_pair_out_schema = TokenPairOutSchema()


def _auth():
    return current_app.extensions["auth"]


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _refresh_token_from_request() -> str | None:
    data = refresh_token_schema.load(_payload())
    return data.get("refresh_token") or request.cookies.get(REFRESH_COOKIE)


def _session_response(result, message: str, status: int):
    response = jsonify(
        {
            "message": message,
            "data": {
                "user": user_out_schema.dump(result.user),
                "tokens": token_pair_out_schema.dump(result.tokens),
            },
        }
    )
    set_auth_cookies(response, result.tokens)
    return response, status


@bp.post("/signup")
def sign_up():
    """
    Register a new user and start a session.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
            password: { type: string }
            name: { type: string }
    responses:
      201:
        description: Created (returns user and tokens)
      409:
        description: Email already registered
      422:
        description: Validation error
    """
    data = sign_up_schema.load(_payload())
    result = _auth().sessions.sign_up(data["email"], data["password"], data["name"])
    return _session_response(result, "User created successfully", 201)


@bp.post("/signin")
def sign_in():
    """
    Sign in: returns access and refresh tokens
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid credentials
    """
    data = sign_in_schema.load(_payload())
    result = _auth().sessions.sign_in(data["email"], data["password"])
    return _session_response(result, "Login successful", 200)


@bp.post("/refresh-token")
def refresh_token():
    """
    Exchange a refresh token for a new access/refresh pair (rotation).
    Body: { "refreshToken": "<token>" } or the refresh_token cookie.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refreshToken: { type: string }
    responses:
      200:
        description: OK (returns the new pair)
      403:
        description: Invalid, revoked or already used refresh token
    """
    tokens = _auth().sessions.refresh(_refresh_token_from_request())
    response = jsonify(
        {
            "message": "Token refreshed successfully",
            "data": {"tokens": token_pair_out_schema.dump(tokens)},
        }
    )
    set_auth_cookies(response, tokens)
    return response, 200


@bp.post("/signout")
def sign_out():
    """
    Sign out: removes the presented refresh token. Always succeeds.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refreshToken: { type: string }
    responses:
      200:
        description: Signed out
    """
    _auth().sessions.sign_out(_refresh_token_from_request())
    response = jsonify({"message": "Signed out successfully"})
    clear_auth_cookies(response)
    return response, 200


@bp.post("/forgot-password")
def forgot_password():
    """
    Send a password reset link if the email belongs to a user.
    The response is identical either way.
    ---
    tags:
      - Password reset
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
    responses:
      200:
        description: Generic acknowledgement
    """
    data = forgot_password_schema.load(_payload())
    return jsonify(_auth().resets.forgot_password(data["email"])), 200


@bp.post("/reset-password/verify")
def verify_reset_token():
    """
    Check a reset link without using it.
    ---
    tags:
      - Password reset
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             token: { type: string }
             userId: { type: string }
    responses:
      200:
        description: "{ valid: bool }"
    """
    data = reset_token_schema.load(_payload())
    return jsonify({"valid": _auth().resets.verify_reset_token(data["user_id"], data["token"])}), 200


@bp.post("/reset-password")
def reset_password():
    """
    Set a new password with a reset token. Ends every session of the user.
    ---
    tags:
      - Password reset
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             token: { type: string }
             userId: { type: string }
             newPassword: { type: string }
    responses:
      200:
        description: Password changed
      400:
        description: Invalid or expired reset token
    """
    data = reset_password_schema.load(_payload())
    result = _auth().resets.reset_password(data["user_id"], data["token"], data["new_password"])
    return jsonify(result), 200


@bp.post("/token/verify")
def verify_token():
    """
    Check an access token's signature and expiry (no store lookup).
    ---
    tags:
      - Tokens
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             token: { type: string }
    responses:
      200:
        description: "{ valid: bool, userId, email, expiresAt }"
    """
    data = token_verify_schema.load(_payload())
    try:
        claims = _auth().codec.verify_access(data["token"])
    except TokenError as exc:
        return jsonify({"valid": False, "reason": exc.__class__.__name__}), 200
    return jsonify(
        {
            "valid": True,
            "userId": claims.user_id,
            "email": claims.email,
            "expiresAt": claims.expires_at.isoformat(),
        }
    ), 200
