# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with structured HAL responses.
Provides centralized error handling and formatting for Flask applications.
"""

from flask import Flask, request, jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException
from typing import Dict, Any, Tuple
from opentelemetry import trace
import logging

from ..domain.errors import (
    AccountNotApprovedException,
    AuthenticationException,
    AuthorizationException,
    ConflictException,
    CustomException,
    NotFoundException,
    ServiceUnavailableException,
    ValidationException
)
from ..services.hal import HalFormatter

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

HTTP_ERROR_TYPES = {
    400: ("bad-request", "Bad Request"),
    401: ("authentication-required", "Authentication Required"),
    403: ("insufficient-permissions", "Insufficient Permissions"),
    404: ("resource-not-found", "Resource Not Found"),
    405: ("method-not-allowed", "Method Not Allowed"),
    409: ("resource-conflict", "Resource Conflict"),
    413: ("payload-too-large", "Payload Too Large"),
    415: ("unsupported-media-type", "Unsupported Media Type"),
    422: ("validation-error", "Validation Error"),
    429: ("rate-limit-exceeded", "Rate Limit Exceeded"),
}


class ErrorHandlerMiddleware:
    """Centralized error handling middleware with HAL response formatting."""

    def __init__(self, app: Flask, hal_formatter: HalFormatter):
        self.app = app
        self.hal_formatter = hal_formatter
        self.register_error_handlers()

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        @self.app.errorhandler(HTTPException)
        def handle_http_exception(error: HTTPException):
            if error.code is not None and error.code >= 500:
                return self.handle_server_error(error)
            return self.handle_client_error(error)

        @self.app.errorhandler(Exception)
        def handle_generic_exception(error: Exception):
            return self.handle_unexpected_error(error)

    def _is_production(self) -> bool:
        return self.app.config.get('ENVIRONMENT') == 'production'

    def handle_client_error(self, error: HTTPException) -> Tuple[Dict[str, Any], int]:
        """
        Handle client errors (4xx status codes).

        Args:
            error: HTTP exception

        Returns:
            Tuple of (error response dict, status code)
        """
        error_type, title = HTTP_ERROR_TYPES.get(error.code, ("client-error", error.name))

        with tracer.start_as_current_span("error_handler.client_error") as span:
            span.set_attributes({
                "error.type": error_type,
                "error.status": error.code,
                "http.method": request.method,
                "http.path": request.path
            })

            detail = str(error.description) if error.description else title

            logger.warning(
                f"Client error: {title}",
                extra={
                    "error_type": error_type,
                    "status_code": error.code,
                    "detail": detail,
                    "path": request.path,
                    "method": request.method,
                    "ip_address": request.remote_addr
                }
            )

            error_response = self.hal_formatter.builder.build_error_response(
                error_type,
                title,
                error.code,
                detail,
                request.path
            )
            return error_response, error.code

    def handle_server_error(self, error: HTTPException) -> Tuple[Dict[str, Any], int]:
        """
        Handle server errors raised as HTTP exceptions (5xx status codes).

        Args:
            error: HTTP exception

        Returns:
            Tuple of (error response dict, status code)
        """
        with tracer.start_as_current_span("error_handler.server_error") as span:
            span.set_attributes({
                "error.type": "internal-server-error",
                "error.status": error.code,
                "http.method": request.method,
                "http.path": request.path
            })

            detail = str(error.description) if error.description else error.name

            logger.error(
                f"Server error: {error.name}",
                extra={
                    "status_code": error.code,
                    "detail": detail,
                    "path": request.path,
                    "method": request.method
                },
                exc_info=True
            )

            if self._is_production():
                detail = "An internal server error occurred"

            error_response = self.hal_formatter.format_server_error(detail, request.path)
            error_response['status'] = error.code
            return error_response, error.code

    def handle_unexpected_error(self, error: Exception) -> Tuple[Dict[str, Any], int]:
        """
        Handle unexpected exceptions not caught by specific handlers.

        Args:
            error: Unexpected exception

        Returns:
            Tuple of (error response dict, status code)
        """
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "unexpected-error",
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "error_type": "unexpected-error",
                    "error_class": error.__class__.__name__,
                    "error_message": str(error),
                    "path": request.path,
                    "method": request.method
                },
                exc_info=True
            )

            detail = "An unexpected error occurred"
            if not self._is_production():
                detail = f"{error.__class__.__name__}: {str(error)}"

            error_response = self.hal_formatter.format_server_error(detail, request.path)
            return error_response, 500


def register_custom_error_handlers(app: Flask, hal_formatter: HalFormatter):
    """
    Register handlers for custom exceptions.

    Args:
        app: Flask application
        hal_formatter: HAL formatter instance
    """

    @app.errorhandler(CustomException)
    def handle_custom_exception(error: CustomException):
        with tracer.start_as_current_span("error_handler.custom_exception") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.status": error.status_code,
                "http.method": request.method,
                "http.path": request.path
            })

            logger.warning(
                f"Custom exception: {error.error_type}",
                extra={
                    "error_type": error.error_type,
                    "status_code": error.status_code,
                    "detail": error.message,
                    "path": request.path,
                    "method": request.method
                }
            )

            if isinstance(error, ValidationException):
                error_response = hal_formatter.format_validation_error(
                    error.message,
                    request.path,
                    error.validation_errors
                )
            elif isinstance(error, AuthenticationException):
                error_response = hal_formatter.format_authentication_error(error.message, request.path)
            elif isinstance(error, AccountNotApprovedException):
                error_response = hal_formatter.format_account_not_approved_error(
                    error.message,
                    request.path,
                    error.reason_code,
                    error.rejection_reason
                )
            elif isinstance(error, AuthorizationException):
                error_response = hal_formatter.format_authorization_error(error.message, request.path)
            elif isinstance(error, NotFoundException):
                error_response = hal_formatter.format_not_found_error(error.message, request.path)
            elif isinstance(error, ConflictException):
                error_response = hal_formatter.format_conflict_error(error.message, request.path)
            elif isinstance(error, ServiceUnavailableException):
                error_response = hal_formatter.format_service_unavailable_error(error.message, request.path)
            else:
                error_response = hal_formatter.format_server_error(error.message, request.path)

            return jsonify(error_response), error.status_code

    @app.errorhandler(ValidationError)
    def handle_pydantic_error(error: ValidationError):
        validation_error = ValidationException.from_pydantic(error)
        logger.warning(
            "Validation error",
            extra={"path": request.path, "error_count": len(validation_error.validation_errors)}
        )
        error_response = hal_formatter.format_validation_error(
            validation_error.message,
            request.path,
            validation_error.validation_errors
        )
        return jsonify(error_response), 400
