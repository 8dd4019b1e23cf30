# SPDX-License-Identifier: Apache-2.0

"""
In-app notification endpoints.
"""

from flask import current_app, jsonify
from flask_openapi3 import APIBlueprint, Tag

from ..middleware.auth import current_actor, require_jwt
from ..models.requests import NotificationPath
from ..services.hal import to_json
from ..utils.request import RequestParser

notifications_tag = Tag(name="Notifications", description="In-app notification inbox")
notifications_bp = APIBlueprint(
    'notifications',
    __name__,
    url_prefix='/api/notifications',
    abp_tags=[notifications_tag]
)


@notifications_bp.get('')
@require_jwt
def list_notifications():
    """List the caller's notifications, newest first, with the unread count."""
    unread_only = RequestParser.get_bool_arg('unreadOnly')
    result = current_app.notification_service.list_notifications(
        current_actor(),
        unread_only=unread_only,
        limit=RequestParser.get_limit()
    )
    return jsonify(current_app.hal_formatter.format_collection(
        result["items"],
        "/api/notifications",
        filters={'unreadOnly': unread_only},
        extra={'unreadCount': result["unreadCount"]}
    ))


@notifications_bp.put('/<notification_id>/read')
@require_jwt
def mark_read(path: NotificationPath):
    """Mark a notification read."""
    notification = current_app.notification_service.mark_read(current_actor(), path.notification_id)
    return jsonify(to_json(notification))


@notifications_bp.put('/read-all')
@require_jwt
def mark_all_read():
    """Mark every notification read."""
    updated = current_app.notification_service.mark_all_read(current_actor())
    return jsonify({"updated": updated})
