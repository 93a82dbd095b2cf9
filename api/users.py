from __future__ import annotations

from flask import Blueprint, request, jsonify, g, abort
from sqlalchemy import func

from models import storage
from models.user import User
from models.subscription import Subscription
from models.schemas.user import UserOutSchema, AccountUpdateSchema, ChannelProfileSchema
from utils.decorators import jwt_required

bp = Blueprint("users", __name__)

user_out_schema = UserOutSchema()
account_update_schema = AccountUpdateSchema()
channel_profile_schema = ChannelProfileSchema()


def load_current_user() -> User:
    user = storage.get(User, g.identity.principal_id)
    if not user:
        abort(404, description="User not found")
    return user


@bp.get("/current-user")
@jwt_required()
def current_user():
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
        description: Unauthorized
    """
    return jsonify(
        {
            "data": user_out_schema.dump(load_current_user()),
            "message": "Current user fetched successfully"
        }
    ), 200


@bp.patch("/update-account")
@jwt_required()
def update_account():
    """
    Update full name and email of the current user.
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
             full_name: { type: string }
             email: { type: string }
    responses:
      200: { description: OK }
      400: { description: Validation error }
      409: { description: Email already registered }
    """
    payload = request.get_json(silent=True) or {}
    data = account_update_schema.load(payload)

    user = load_current_user()
    session = storage.get_session()
    taken = session.query(User).filter(User.email == data["email"], User.id != user.id).first()
    if taken:
        abort(409, description="Email already registered")

    user.full_name = data["full_name"]
    user.email = data["email"]
    user.save()
    return jsonify(
        {
            "data": user_out_schema.dump(user),
            "message": "Account details updated successfully"
        }
    ), 200


@bp.get("/c/<username>")
@jwt_required()
def channel_profile(username: str):
    """
    Channel profile with subscriber counts.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      -  in: path
         name: username
         type: string
         required: true
    responses:
      200: { description: OK }
      404: { description: Channel does not exist }
    """
    username = (username or "").strip().lower()
    if not username:
        abort(400, description="username is missing")

    session = storage.get_session()
    channel = session.query(User).filter(User.username == username).first()
    if not channel:
        abort(404, description="Channel does not exist")

    subscribers_count = session.query(func.count(Subscription.id)).filter(
        Subscription.channel_id == channel.id).scalar()
    subscribed_to_count = session.query(func.count(Subscription.id)).filter(
        Subscription.subscriber_id == channel.id).scalar()
    is_subscribed = session.query(Subscription.id).filter(
        Subscription.channel_id == channel.id,
        Subscription.subscriber_id == g.identity.principal_id,
    ).first() is not None

    profile = {
        "id": channel.id,
        "username": channel.username,
        "full_name": channel.full_name,
        "email": channel.email,
        "subscribers_count": subscribers_count,
        "channels_subscribed_to_count": subscribed_to_count,
        "is_subscribed": is_subscribed,
    }
    return jsonify(
        {
            "data": channel_profile_schema.dump(profile),
            "message": "User channel fetched successfully"
        }
    ), 200
