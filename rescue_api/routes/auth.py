# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Authentication endpoints for registration, login, logout and password reset.
"""

from flask import current_app, jsonify, request
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..middleware.auth import current_actor, require_jwt
from ..models.requests import ForgotPasswordRequest, LoginRequest, RegisterRequest, ResetPasswordRequest
from ..utils.request import RequestParser

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

auth_tag = Tag(name="Authentication", description="Account registration, sessions and password reset")
auth_bp = APIBlueprint(
    'auth',
    __name__,
    url_prefix='/api/auth',
    abp_tags=[auth_tag]
)


@auth_bp.post('/register')
def register():
    """
    Register a new account.

    Organization admins and veterinarians must attach a verification
    document and can log in only once a superadmin approves them. Other
    roles receive a token straight away.
    """
    payload = RequestParser.parse_model(RegisterRequest)
    result = current_app.account_service.register(payload.model_dump())

    body = {
        "account": current_app.hal_formatter.format_account(result["account"]),
        "token": result["token"],
        "requiresVerification": result["requiresVerification"]
    }
    if result["requiresVerification"]:
        body["message"] = "Registration received. Your account will be reviewed before you can log in."
    return jsonify(body), 201


@auth_bp.post('/login')
def login():
    """
    Authenticate with email and password and return a bearer token.

    Gated accounts that are pending or rejected receive a 403 problem with a
    distinct reason code.
    """
    with tracer.start_as_current_span("auth.login", attributes={"ip_address": request.remote_addr or ""}):
        payload = RequestParser.parse_model(LoginRequest)
        result = current_app.account_service.login(payload.email, payload.password)
        return jsonify({
            "account": current_app.hal_formatter.format_account(result["account"]),
            "token": result["token"]
        })


@auth_bp.post('/logout')
@require_jwt
def logout():
    """Revoke the current token."""
    revoked = current_app.account_service.logout(current_actor())
    return jsonify({"message": "Logged out successfully", "revoked": revoked})


@auth_bp.get('/me')
@require_jwt
def me():
    """Get the authenticated account."""
    account = current_app.account_service.get_account(current_actor())
    return jsonify(current_app.hal_formatter.format_account(account))


@auth_bp.post('/forgot-password')
def forgot_password():
    """
    Send a one-time password reset code.

    The response does not reveal whether the email is registered.
    """
    payload = RequestParser.parse_model(ForgotPasswordRequest)
    return jsonify(current_app.account_service.request_password_reset(payload.email))


@auth_bp.post('/reset-password')
def reset_password():
    """Set a new password with a one-time code."""
    payload = RequestParser.parse_model(ResetPasswordRequest)
    result = current_app.account_service.confirm_password_reset(
        payload.email,
        payload.otp,
        payload.new_password
    )
    return jsonify(result)
