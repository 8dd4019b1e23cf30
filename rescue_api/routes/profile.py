# SPDX-License-Identifier: Apache-2.0

"""
Profile endpoints for the logged-in account.
"""

from flask import current_app, jsonify
from flask_openapi3 import APIBlueprint, Tag

from ..middleware.auth import current_actor, require_jwt
from ..models.requests import UpdateProfileRequest
from ..utils.request import RequestParser

PROFILE_UPDATED_MESSAGE = "Profile updated successfully"

profile_tag = Tag(name="Profile", description="The caller's own account")
profile_bp = APIBlueprint(
    'profile',
    __name__,
    url_prefix='/api/profile',
    abp_tags=[profile_tag]
)


@profile_bp.get('')
@require_jwt
def get_profile():
    """Get the caller's profile."""
    account = current_app.account_service.get_profile(current_actor())
    return jsonify(current_app.hal_formatter.format_account(account, "/api/profile"))


@profile_bp.put('')
@require_jwt
def update_profile():
    """
    Update the caller's profile.

    Changing the password requires currentPassword alongside newPassword.
    """
    payload = RequestParser.parse_model(UpdateProfileRequest)
    account = current_app.account_service.update_profile(current_actor(), payload.changes())
    body = current_app.hal_formatter.format_account(account, "/api/profile")
    body['message'] = PROFILE_UPDATED_MESSAGE
    return jsonify(body)
