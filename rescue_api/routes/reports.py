# SPDX-License-Identifier: Apache-2.0

"""
Rescue report endpoints.

Anyone may submit a sighting. Organization admins triage reports, assign
them to volunteers and promote them into rescue cases.
"""

from flask import current_app, jsonify, request
from flask_openapi3 import APIBlueprint, Tag
import logging

from ..middleware.auth import current_actor, optional_jwt, require_jwt
from ..models.requests import AssignReportRequest, ReportPath, ReportStatusRequest, SubmitReportRequest
from ..utils.request import RequestParser

logger = logging.getLogger(__name__)

reports_tag = Tag(name="Reports", description="Citizen sighting reports and triage")
reports_bp = APIBlueprint(
    'reports',
    __name__,
    url_prefix='/api/reports',
    abp_tags=[reports_tag]
)


@reports_bp.post('')
@optional_jwt
def submit_report():
    """
    Submit a sighting report.

    Authentication is optional; logged-in reporters are notified when their
    report becomes a rescue case.
    """
    payload = RequestParser.parse_model(SubmitReportRequest)
    report = current_app.rescue_service.submit_report(current_actor(), payload.model_dump())
    return jsonify(current_app.hal_formatter.format_report(report, current_actor())), 201


@reports_bp.get('')
@require_jwt
def list_reports():
    """List reports in triage order: most urgent first, then newest."""
    status = request.args.get('status')
    reports = current_app.rescue_service.list_reports(current_actor(), status)
    return jsonify(current_app.hal_formatter.format_report_collection(
        reports,
        current_actor(),
        filters={'status': status}
    ))


@reports_bp.get('/my-tasks')
@require_jwt
def list_my_tasks():
    """List the reports assigned to the calling volunteer."""
    reports = current_app.rescue_service.list_my_tasks(current_actor())
    return jsonify(current_app.hal_formatter.format_report_collection(
        reports,
        current_actor(),
        collection_path="/api/reports/my-tasks"
    ))


@reports_bp.get('/my-reports')
@require_jwt
def list_my_reports():
    """List the reports the caller submitted, newest first."""
    reports = current_app.rescue_service.list_my_reports(current_actor())
    return jsonify(current_app.hal_formatter.format_report_collection(
        reports,
        current_actor(),
        collection_path="/api/reports/my-reports"
    ))


@reports_bp.get('/<report_id>')
@require_jwt
def get_report(path: ReportPath):
    """Get a report."""
    report = current_app.rescue_service.get_report_for(current_actor(), path.report_id)
    return jsonify(current_app.hal_formatter.format_report(report, current_actor()))


@reports_bp.put('/<report_id>/status')
@require_jwt
def set_report_status(path: ReportPath):
    """Move a report through its lifecycle."""
    payload = RequestParser.parse_model(ReportStatusRequest)
    report = current_app.rescue_service.set_report_status(current_actor(), path.report_id, payload.status)
    return jsonify(current_app.hal_formatter.format_report(report, current_actor()))


@reports_bp.put('/<report_id>/assign')
@require_jwt
def assign_report(path: ReportPath):
    """Assign a report to a volunteer."""
    payload = RequestParser.parse_model(AssignReportRequest)
    report = current_app.rescue_service.assign_report(current_actor(), path.report_id, payload.volunteer_id)
    return jsonify(current_app.hal_formatter.format_report(report, current_actor()))


@reports_bp.post('/<report_id>/promote')
@require_jwt
def promote_report(path: ReportPath):
    """
    Create a rescue case from a report.

    Idempotent: promoting an already promoted report returns the existing
    dog with status 200 instead of 201.
    """
    dog, created = current_app.rescue_service.promote_report_to_dog(current_actor(), path.report_id)
    body = current_app.hal_formatter.format_dog(dog, current_actor())
    body['created'] = created
    return jsonify(body), 201 if created else 200
