from flask import Blueprint, current_app
from sqlalchemy import text

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """
    Health check (pings the credential store)
    ---
    tags:
      - Health
    responses:
      200:
        description: API is up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
      503:
        description: Credential store unavailable
    """
    with current_app.extensions["auth"].storage.transaction() as session:
        session.execute(text("SELECT 1"))
    return {"status": "ok", "version": "1.0.0", "database": "ok"}, 200

