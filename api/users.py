from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request
from marshmallow import ValidationError

from models.credential_store import ProfileUpdate
from models.schemas.user import ProfileUpdateSchema, UserOutSchema
from utils.decorators import jwt_required, optional_jwt

from .cookies import clear_auth_cookies

bp = Blueprint("users", __name__)

profile_update_schema = ProfileUpdateSchema()
user_out_schema = UserOutSchema()


def _sessions():
    return current_app.extensions["auth"].sessions


@bp.get("/me")
@jwt_required()
def me():
    """
    Get current user info.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: No access token
      403:
        description: Invalid or expired access token
    """
    user = _sessions().current_user(g.identity.user_id)
    return jsonify({"data": {"user": user_out_schema.dump(user)}}), 200


@bp.patch("/me")
@jwt_required()
def update_me():
    """
    Update profile fields. The password has its own reset flow.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             name: { type: string }
    responses:
      200: { description: OK }
      422: { description: Validation error }
    """
    data = profile_update_schema.load(request.get_json(silent=True) or {})
    if not data:
        raise ValidationError("No valid fields to update.")
    user = _sessions().update_profile(g.identity.user_id, ProfileUpdate(display_name=data.get("name")))
    return jsonify({"data": {"user": user_out_schema.dump(user)}}), 200


@bp.post("/revoke-all")
@jwt_required()
def revoke_all():
    """
    End every session of the current user (all refresh tokens).
    Access tokens already issued stay valid until they expire.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200: { description: "{ revoked: n }" }
    """
    revoked = _sessions().revoke_all(g.identity.user_id)
    response = jsonify({"message": "All sessions revoked", "revoked": revoked})
    clear_auth_cookies(response)
    return response, 200


@bp.get("/status")
@optional_jwt()
def status():
    """
    Who is calling, if anyone. Never fails for anonymous callers.
    ---
    tags:
      - Users
    responses:
      200: { description: "{ authenticated: bool, userId?, email? }" }
    """
    identity = g.identity
    if identity is None:
        return jsonify({"authenticated": False}), 200
    return jsonify({"authenticated": True, "userId": identity.user_id, "email": identity.email}), 200
