"""
Authentication blueprint, mounted under /api/v1/users:
- POST /register
- POST /login
- POST /logout
- POST /refresh-token
- POST /change-password

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived access tokens and longer-lived refresh tokens (JWTs signed with HS256)
- Keeps exactly one refresh token per user on users.current_refresh_token;
  refresh rotates it with a compare-and-set, logout clears it
- Delivers both tokens as HTTP-only cookies and in the response body
"""
from __future__ import annotations

import logging

from flask import Blueprint, request, jsonify, g, abort, current_app
from sqlalchemy import or_

from models import storage
from models.user import User
from models.schemas.user import UserCreateSchema, UserOutSchema, UserLoginSchema, PasswordChangeSchema

from api.errors import unwrap
from utils.decorators import RequestCredentials, get_token_issuer, jwt_required
from utils.refresh import RefreshCoordinator
from utils.security import hash_password, verify_password
from utils.sessions import SessionStore, revoke
from utils.tokens import AuthSettings, TokenPair

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)

user_create_schema = UserCreateSchema()
user_out_schema = UserOutSchema()
user_login_schema = UserLoginSchema()
password_change_schema = PasswordChangeSchema()


def access_claims(user: User) -> dict:
    """Display claims carried by access tokens; the server never trusts them."""
    return {"username": user.username, "email": user.email}


def access_claims_for(principal_id: str) -> dict:
    user = storage.get(User, principal_id)
    return access_claims(user) if user else {}


def get_session_store() -> SessionStore:
    return current_app.extensions["session_store"]


def get_refresh_coordinator() -> RefreshCoordinator:
    return current_app.extensions["refresh_coordinator"]


def set_auth_cookies(response, tokens: TokenPair, settings: AuthSettings):
    for name, value, ttl in (
        (settings.access_cookie, tokens.access_token, settings.access_token_ttl),
        (settings.refresh_cookie, tokens.refresh_token, settings.refresh_token_ttl),
    ):
        response.set_cookie(
            name,
            value,
            max_age=int(ttl.total_seconds()),
            path="/",
            secure=settings.cookie_secure,
            httponly=True,
            samesite=settings.cookie_samesite,
        )
    return response


def clear_auth_cookies(response, settings: AuthSettings):
    for name in (settings.access_cookie, settings.refresh_cookie):
        response.delete_cookie(
            name,
            path="/",
            secure=settings.cookie_secure,
            httponly=True,
            samesite=settings.cookie_samesite,
        )
    return response


@bp.post("/register")
def register():
    """
    register a new user.
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
            full_name: { type: string }
            username: { type: string }
            email: { type: string }
            password: { type: string }
    responses:
      201:
        description: Created
      400:
        description: Validation error
      409:
        description: Username or email already registered
    """
    payload = request.get_json(silent=True) or {}
    data = user_create_schema.load(payload)

    session = storage.get_session()
    existing = session.query(User).filter(
        or_(User.username == data["username"], User.email == data["email"])
    ).first()
    if existing:
        abort(409, description="User already exists")

    user = User(
        username=data["username"],
        email=data["email"],
        full_name=data["full_name"],
        password_hash=hash_password(data["password"]),
    )
    user.save()
    logger.info("registered user %s", user.id)

    return jsonify(
        {
            "data": user_out_schema.dump(user),
            "message": "User registered successfully"
        }
    ), 201


@bp.post("/login")
def login():
    """
    Login: sets accessToken / refreshToken cookies and returns both tokens
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
             username: { type: string }
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      400:
        description: Missing username/email or password
      401:
        description: Wrong password
      404:
        description: User not found
    """
    payload = request.get_json(silent=True) or {}
    data = user_login_schema.load(payload)

    filters = []
    if data.get("username"):
        filters.append(User.username == data["username"])
    if data.get("email"):
        filters.append(User.email == data["email"])

    session = storage.get_session()
    user: User = session.query(User).filter(or_(*filters)).first()
    if not user:
        abort(404, description="User not found")
    if not verify_password(data["password"], user.password_hash):
        logger.warning("failed login for user %s", user.id)
        abort(401, description="Invalid credentials")

    issuer = get_token_issuer()
    tokens = issuer.issue(user.id, extra_claims=access_claims(user))
    get_session_store().set(user.id, tokens.refresh_token)
    logger.info("login for user %s", user.id)

    response = jsonify(
        {
            "data": {
                "user": user_out_schema.dump(user),
                "accessToken": tokens.access_token,
                "refreshToken": tokens.refresh_token,
            },
            "message": "Login successful"
        }
    )
    return set_auth_cookies(response, tokens, issuer.settings), 200


@bp.post("/logout")
@jwt_required()
def logout():
    """
    logout: clears the stored refresh token and both cookies.
    Access tokens already issued stay valid until they expire.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logged out
      401:
        description: Unauthorized
    """
    revoke(get_session_store(), g.identity.principal_id)
    response = jsonify({"data": {}, "message": "User logged out"})
    return clear_auth_cookies(response, get_token_issuer().settings), 200


@bp.post("/refresh-token")
def refresh_token():
    """
    Exchange the current refresh token for a new token pair (rotation).
    Reads the refreshToken cookie, else { "refreshToken": "<token>" } in the body.
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
        description: New tokens issued; cookies rotated
      401:
        description: Missing, invalid, expired or already used refresh token
    """
    issuer = get_token_issuer()
    credentials = RequestCredentials.from_request(request, issuer.settings)
    outcome = unwrap(get_refresh_coordinator().refresh(credentials.refresh_token))

    response = jsonify(
        {
            "data": {
                "accessToken": outcome.tokens.access_token,
                "refreshToken": outcome.tokens.refresh_token,
            },
            "message": "Token refreshed"
        }
    )
    return set_auth_cookies(response, outcome.tokens, issuer.settings), 200


@bp.post("/change-password")
@jwt_required()
def change_password():
    """
    Change the current user's password.
    ---
    tags:
      - Auth
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
             old_password: { type: string }
             new_password: { type: string }
    responses:
      200:
        description: Password changed
      400:
        description: Old password is incorrect or new password invalid
    """
    payload = request.get_json(silent=True) or {}
    data = password_change_schema.load(payload)

    user = storage.get(User, g.identity.principal_id)
    if not user:
        abort(404, description="User not found")
    if not verify_password(data["old_password"], user.password_hash):
        abort(400, description="Old password is incorrect")

    user.password_hash = hash_password(data["new_password"])
    user.save()
    logger.info("password changed for user %s", user.id)
    return jsonify({"data": {}, "message": "Password changed successfully"}), 200
