# SPDX-License-Identifier: Apache-2.0

"""
Volunteer account management endpoints for superadmins.
"""

from flask import current_app, jsonify
from flask_openapi3 import APIBlueprint, Tag

from ..middleware.auth import current_actor, require_jwt
from ..models.requests import CreateVolunteerRequest, UpdateVolunteerRequest, VolunteerPath
from ..utils.request import RequestParser

volunteers_tag = Tag(name="Volunteers", description="Volunteer accounts managed by superadmins")
volunteers_bp = APIBlueprint(
    'volunteers',
    __name__,
    url_prefix='/api/volunteers',
    abp_tags=[volunteers_tag]
)


def _volunteer_path(volunteer_id: str) -> str:
    return f"/api/volunteers/{volunteer_id}"


@volunteers_bp.get('')
@require_jwt
def list_volunteers():
    """List volunteer accounts, newest first."""
    volunteers = current_app.directory_service.list_volunteers(current_actor())
    return jsonify(current_app.hal_formatter.format_collection(volunteers, "/api/volunteers"))


@volunteers_bp.post('')
@require_jwt
def create_volunteer():
    """Create a volunteer account."""
    payload = RequestParser.parse_model(CreateVolunteerRequest)
    volunteer = current_app.directory_service.create_volunteer(current_actor(), payload.model_dump())
    return jsonify(current_app.hal_formatter.format_account(volunteer, _volunteer_path(volunteer['id']))), 201


@volunteers_bp.get('/<volunteer_id>')
@require_jwt
def get_volunteer(path: VolunteerPath):
    """Get a volunteer account."""
    volunteer = current_app.directory_service.get_volunteer(current_actor(), path.volunteer_id)
    return jsonify(current_app.hal_formatter.format_account(volunteer, _volunteer_path(path.volunteer_id)))


@volunteers_bp.put('/<volunteer_id>')
@require_jwt
def update_volunteer(path: VolunteerPath):
    """Update a volunteer account; only fields present in the body change."""
    payload = RequestParser.parse_model(UpdateVolunteerRequest)
    volunteer = current_app.directory_service.update_volunteer(
        current_actor(), path.volunteer_id, payload.changes()
    )
    return jsonify(current_app.hal_formatter.format_account(volunteer, _volunteer_path(path.volunteer_id)))


@volunteers_bp.delete('/<volunteer_id>')
@require_jwt
def delete_volunteer(path: VolunteerPath):
    """Delete a volunteer account without open rescue tasks."""
    current_app.directory_service.delete_volunteer(current_actor(), path.volunteer_id)
    return '', 204
