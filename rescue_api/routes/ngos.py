# SPDX-License-Identifier: Apache-2.0

"""
Organization overview endpoints for superadmins.
"""

from flask import current_app, jsonify
from flask_openapi3 import APIBlueprint, Tag

from ..middleware.auth import current_actor, require_jwt
from ..models.requests import NgoPath

ngos_tag = Tag(name="Organizations", description="Approved rescue organizations and their activity")
ngos_bp = APIBlueprint(
    'ngos',
    __name__,
    url_prefix='/api/ngos',
    abp_tags=[ngos_tag]
)


@ngos_bp.get('')
@require_jwt
def list_ngos():
    """List approved organizations with rescue statistics."""
    ngos = current_app.directory_service.list_ngos(current_actor())
    return jsonify(current_app.hal_formatter.format_collection(ngos, "/api/ngos"))


@ngos_bp.get('/<ngo_id>')
@require_jwt
def get_ngo(path: NgoPath):
    """Get an organization with its rescue operations from the last year."""
    detail = current_app.directory_service.get_ngo(current_actor(), path.ngo_id)
    return jsonify(current_app.hal_formatter.format_ngo(detail, current_actor()))
