# SPDX-License-Identifier: Apache-2.0

"""
Rescue case endpoints.

Listing and reading dogs is public; editing is reserved to organization
admins, and treatment updates to the assigned veterinarian.
"""

from flask import current_app, jsonify, request
from flask_openapi3 import APIBlueprint, Tag
import logging

from ..middleware.auth import current_actor, optional_jwt, require_jwt
from ..models.requests import (
    AssignVetRequest,
    CreateDogRequest,
    DogPath,
    MedicalRecordRequest,
    TreatmentStatusRequest,
    UpdateDogRequest
)
from ..services.hal import to_json
from ..utils.request import RequestParser

logger = logging.getLogger(__name__)

dogs_tag = Tag(name="Dogs", description="Rescue case lifecycle")
dogs_bp = APIBlueprint(
    'dogs',
    __name__,
    url_prefix='/api/dogs',
    abp_tags=[dogs_tag]
)

vets_tag = Tag(name="Veterinarians", description="Veterinarian directory")
vets_bp = APIBlueprint(
    'vets',
    __name__,
    url_prefix='/api/vets',
    abp_tags=[vets_tag]
)


@dogs_bp.get('')
@optional_jwt
def list_dogs():
    """
    List rescue cases, newest first.

    Supports `status`, `district` and `createdBy` filters.
    """
    filters = {
        'status': request.args.get('status'),
        'district': request.args.get('district'),
        'createdBy': request.args.get('createdBy')
    }
    dogs = current_app.rescue_service.list_dogs(
        status=filters['status'],
        district=filters['district'],
        created_by=filters['createdBy'],
        limit=RequestParser.get_limit()
    )
    return jsonify(current_app.hal_formatter.format_dog_collection(dogs, current_actor(), filters))


@dogs_bp.post('')
@require_jwt
def create_dog():
    """Create a rescue case in the reported state."""
    payload = RequestParser.parse_model(CreateDogRequest)
    dog = current_app.rescue_service.create_dog(current_actor(), payload.model_dump())
    return jsonify(current_app.hal_formatter.format_dog(dog, current_actor())), 201


@dogs_bp.get('/<dog_id>')
@optional_jwt
def get_dog(path: DogPath):
    """Get a rescue case."""
    dog = current_app.rescue_service.get_dog(path.dog_id)
    return jsonify(current_app.hal_formatter.format_dog(dog, current_actor()))


@dogs_bp.patch('/<dog_id>')
@require_jwt
def update_dog(path: DogPath):
    """
    Partially update a rescue case.

    Only the fields present in the body are changed. Adopted dogs cannot be
    edited, and adoption itself only happens by approving an application.
    """
    payload = RequestParser.parse_model(UpdateDogRequest)
    dog = current_app.rescue_service.update_dog(current_actor(), path.dog_id, payload.changes())
    return jsonify(current_app.hal_formatter.format_dog(dog, current_actor()))


@dogs_bp.delete('/<dog_id>')
@require_jwt
def delete_dog(path: DogPath):
    """Delete a rescue case that has not been adopted."""
    current_app.rescue_service.delete_dog(current_actor(), path.dog_id)
    return '', 204


@dogs_bp.put('/<dog_id>/vet')
@require_jwt
def assign_vet(path: DogPath):
    """Assign a veterinarian to a dog, or unassign with a null vetId."""
    payload = RequestParser.parse_model(AssignVetRequest)
    dog = current_app.rescue_service.assign_vet(current_actor(), path.dog_id, payload.vet_id)
    return jsonify(current_app.hal_formatter.format_dog(dog, current_actor()))


@dogs_bp.put('/<dog_id>/treatment')
@require_jwt
def set_treatment_status(path: DogPath):
    """Update treatment progress (assigned veterinarian or superadmin)."""
    payload = RequestParser.parse_model(TreatmentStatusRequest)
    dog = current_app.rescue_service.set_treatment_status(
        current_actor(),
        path.dog_id,
        payload.treatment_status
    )
    return jsonify(current_app.hal_formatter.format_dog(dog, current_actor()))


@dogs_bp.post('/<dog_id>/medical-records')
@require_jwt
def record_medical_record(path: DogPath):
    """Record a medical event for a dog (assigned veterinarian or superadmin)."""
    payload = RequestParser.parse_model(MedicalRecordRequest)
    record = current_app.rescue_service.record_medical_record(
        current_actor(),
        path.dog_id,
        payload.model_dump()
    )
    return jsonify(to_json(record)), 201


@dogs_bp.get('/<dog_id>/medical-records')
@require_jwt
def list_medical_records(path: DogPath):
    """List the medical history of a dog, newest first."""
    records = current_app.rescue_service.list_medical_records(current_actor(), path.dog_id)
    return jsonify(current_app.hal_formatter.format_collection(
        records,
        f"/api/dogs/{path.dog_id}/medical-records"
    ))


@vets_bp.get('')
@require_jwt
def list_vets():
    """List veterinarians available for assignment."""
    vets = current_app.rescue_service.list_vets()
    return jsonify(current_app.hal_formatter.format_collection(vets, "/api/vets"))
