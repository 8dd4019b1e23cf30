# SPDX-License-Identifier: Apache-2.0

"""
Account verification endpoints for superadmins.
"""

from flask import current_app, jsonify
from flask_openapi3 import APIBlueprint, Tag

from ..middleware.auth import current_actor, require_jwt
from ..models.requests import AccountPath, RejectAccountRequest
from ..utils.request import RequestParser

verifications_tag = Tag(name="Verifications", description="Review of organization and veterinarian accounts")
verifications_bp = APIBlueprint(
    'verifications',
    __name__,
    url_prefix='/api/verifications',
    abp_tags=[verifications_tag]
)


@verifications_bp.get('/pending')
@require_jwt
def list_pending():
    """List accounts waiting for verification, oldest first."""
    accounts = current_app.account_service.list_pending_verifications(current_actor())
    return jsonify(current_app.hal_formatter.format_collection(accounts, "/api/verifications/pending"))


@verifications_bp.post('/<account_id>/approve')
@require_jwt
def approve(path: AccountPath):
    """Approve a pending account."""
    account = current_app.account_service.approve_account(current_actor(), path.account_id)
    return jsonify(current_app.hal_formatter.format_account(account, f"/api/verifications/{path.account_id}"))


@verifications_bp.post('/<account_id>/reject')
@require_jwt
def reject(path: AccountPath):
    """Reject a pending account with a reason."""
    payload = RequestParser.parse_model(RejectAccountRequest)
    account = current_app.account_service.reject_account(current_actor(), path.account_id, payload.reason)
    return jsonify(current_app.hal_formatter.format_account(account, f"/api/verifications/{path.account_id}"))
