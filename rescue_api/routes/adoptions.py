# SPDX-License-Identifier: Apache-2.0

"""
Adoption application endpoints.
"""

from flask import current_app, jsonify, request
from flask_openapi3 import APIBlueprint, Tag
import logging

from ..middleware.auth import current_actor, require_jwt
from ..models.requests import AdoptionApplicationRequest, ApplicationDecisionRequest, ApplicationPath
from ..utils.request import RequestParser

logger = logging.getLogger(__name__)

adoptions_tag = Tag(name="Adoptions", description="Adoption applications and review")
adoptions_bp = APIBlueprint(
    'adoptions',
    __name__,
    url_prefix='/api/adoptions',
    abp_tags=[adoptions_tag]
)


@adoptions_bp.post('')
@require_jwt
def submit_application():
    """
    Apply to adopt a dog.

    The dog must be adoptable and the applicant may hold only one active
    application per dog.
    """
    payload = RequestParser.parse_model(AdoptionApplicationRequest)
    attributes = payload.model_dump(exclude={'dog_id'})
    application = current_app.adoption_service.submit_application(current_actor(), payload.dog_id, attributes)
    return jsonify(current_app.hal_formatter.format_application(application, current_actor())), 201


@adoptions_bp.get('/my')
@require_jwt
def list_my_applications():
    """List the caller's applications, newest first."""
    applications = current_app.adoption_service.list_my_applications(current_actor())
    return jsonify(current_app.hal_formatter.format_application_collection(
        applications,
        current_actor(),
        "/api/adoptions/my"
    ))


@adoptions_bp.get('/ngo')
@require_jwt
def list_organization_applications():
    """List applications for the organization's dogs (all for superadmins)."""
    status = request.args.get('status')
    applications = current_app.adoption_service.list_organization_applications(current_actor(), status)
    return jsonify(current_app.hal_formatter.format_application_collection(
        applications,
        current_actor(),
        "/api/adoptions/ngo",
        filters={'status': status}
    ))


@adoptions_bp.get('/<application_id>')
@require_jwt
def get_application(path: ApplicationPath):
    """Get an application (applicant, owning organization or superadmin)."""
    application = current_app.adoption_service.get_application(current_actor(), path.application_id)
    return jsonify(current_app.hal_formatter.format_application(application, current_actor()))


@adoptions_bp.put('/<application_id>/status')
@require_jwt
def decide_application(path: ApplicationPath):
    """
    Review an application.

    Approving moves the dog to adopted atomically; rejecting leaves the dog
    untouched.
    """
    payload = RequestParser.parse_model(ApplicationDecisionRequest)
    application = current_app.adoption_service.decide_application(
        current_actor(),
        path.application_id,
        payload.status,
        payload.notes
    )
    return jsonify(current_app.hal_formatter.format_application(application, current_actor()))
