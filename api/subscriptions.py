from __future__ import annotations

import logging

from flask import Blueprint, jsonify, g, abort

from models import storage
from models.user import User
from models.subscription import Subscription
from models.schemas.user import ChannelSummarySchema
from utils.decorators import jwt_required

logger = logging.getLogger(__name__)

bp = Blueprint("subscriptions", __name__)

channel_list_schema = ChannelSummarySchema(many=True)


def get_channel_or_404(channel_id: str) -> User:
    channel = storage.get(User, channel_id)
    if not channel:
        abort(404, description="Channel does not exist")
    return channel


@bp.post("/c/<channel_id>")
@jwt_required()
def toggle_subscription(channel_id: str):
    """
    Subscribe to a channel, or unsubscribe if already subscribed.
    ---
    tags:
      - Subscriptions
    security:
      - Bearer: []
    parameters:
      -  in: path
         name: channel_id
         type: string
         required: true
    responses:
      200: { description: "{ subscribed: bool }" }
      400: { description: Cannot subscribe to yourself }
      404: { description: Channel does not exist }
    """
    subscriber_id = g.identity.principal_id
    if channel_id == subscriber_id:
        abort(400, description="You cannot subscribe to yourself")
    get_channel_or_404(channel_id)

    session = storage.get_session()
    existing = session.query(Subscription).filter(
        Subscription.channel_id == channel_id,
        Subscription.subscriber_id == subscriber_id,
    ).first()

    if existing:
        storage.delete(existing)
        storage.save()
        return jsonify({"data": {"subscribed": False}, "message": "Unsubscribed successfully"}), 200

    Subscription(channel_id=channel_id, subscriber_id=subscriber_id).save()
    logger.info("user %s subscribed to %s", subscriber_id, channel_id)
    return jsonify({"data": {"subscribed": True}, "message": "Subscribed successfully"}), 200


@bp.get("/c/<channel_id>")
@jwt_required()
def list_subscribers(channel_id: str):
    """
    Subscribers of a channel.
    ---
    tags:
      - Subscriptions
    security:
      - Bearer: []
    parameters:
      -  in: path
         name: channel_id
         type: string
         required: true
    responses:
      200: { description: OK }
      404: { description: Channel does not exist }
    """
    get_channel_or_404(channel_id)
    session = storage.get_session()
    rows = (
        session.query(User)
        .join(Subscription, Subscription.subscriber_id == User.id)
        .filter(Subscription.channel_id == channel_id)
        .order_by(User.username.asc())
        .all()
    )
    return jsonify({"data": channel_list_schema.dump(rows), "message": "Subscribers fetched successfully"}), 200


@bp.get("/u/<subscriber_id>")
@jwt_required()
def list_subscribed_channels(subscriber_id: str):
    """
    Channels the current user is subscribed to; only readable by that user.
    ---
    tags:
      - Subscriptions
    security:
      - Bearer: []
    parameters:
      -  in: path
         name: subscriber_id
         type: string
         required: true
    responses:
      200: { description: OK }
      403: { description: Not your subscription list }
    """
    if subscriber_id != g.identity.principal_id:
        abort(403, description="You can only list your own subscriptions")
    session = storage.get_session()
    rows = (
        session.query(User)
        .join(Subscription, Subscription.channel_id == User.id)
        .filter(Subscription.subscriber_id == subscriber_id)
        .order_by(User.username.asc())
        .all()
    )
    return jsonify({"data": channel_list_schema.dump(rows), "message": "Subscribed channels fetched successfully"}), 200
