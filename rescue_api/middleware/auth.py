# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for JWT token validation and actor context extraction.

This module provides Flask middleware for validating bearer tokens, checking
the logout blocklist, and building the actor context for request processing.
"""

from functools import wraps
from flask import current_app, g, jsonify, request
from typing import Any, Callable, Dict, Optional
from opentelemetry import trace
import logging

from ..models.entities import ActorContext
from ..services.auth import AuthService, TokenValidationError
from ..services.hal import PROBLEM_BASE_URL
from ..services.redis import RedisService
from ..utils.request import RequestParser

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class MissingTokenError(TokenValidationError):
    """Raised when a protected route is called without a bearer token."""
    pass


class TokenRevokedError(TokenValidationError):
    """Raised when a token was blocklisted by logout."""
    pass


def _auth_problem(error_type: str, title: str, detail: str, status: int = 401):
    return jsonify({
        "type": f"{PROBLEM_BASE_URL}/{error_type}",
        "title": title,
        "status": status,
        "detail": detail,
        "instance": request.path
    }), status


class AuthMiddleware:
    """
    JWT authentication middleware for Flask applications.

    Handles token extraction, validation, blocklist checking, and actor
    context building for protected endpoints.
    """

    def __init__(self, auth_service: AuthService, redis_service: Optional[RedisService] = None):
        """
        Initialize the authentication middleware.

        Args:
            auth_service: JWT authentication service
            redis_service: Redis service for the token blocklist, if configured
        """
        self.auth_service = auth_service
        self.redis_service = redis_service

    def extract_token_from_request(self) -> Optional[str]:
        """
        Extract JWT token from request headers.

        Returns:
            JWT token string or None if not found
        """
        auth_header = request.headers.get('Authorization', '')
        if auth_header.startswith('Bearer '):
            return auth_header[7:].strip() or None
        return None

    def is_token_blocked(self, token_payload: Dict[str, Any]) -> bool:
        """
        Check if a validated token was revoked by logout.

        Args:
            token_payload: Decoded JWT payload

        Returns:
            True if token is blocked, False otherwise
        """
        if self.redis_service is None:
            return False
        return self.redis_service.is_token_blocked(token_payload["jti"])

    def build_actor_context(self, token_payload: Dict[str, Any], request_info: Dict[str, Any]) -> ActorContext:
        """
        Build actor context from validated token payload and request information.

        Args:
            token_payload: Decoded JWT payload
            request_info: Request metadata (IP, user agent)

        Returns:
            ActorContext for request processing
        """
        return ActorContext(
            account_id=token_payload["sub"],
            role=token_payload["role"],
            email=token_payload.get("email"),
            name=token_payload.get("name"),
            token_payload=token_payload,
            ip_address=request_info.get("ip_address"),
            user_agent=request_info.get("user_agent")
        )

    def authenticate(self) -> ActorContext:
        """
        Validate the request's bearer token.

        Raises:
            TokenValidationError: If the token is missing, invalid or revoked
        """
        token = self.extract_token_from_request()
        if not token:
            raise MissingTokenError("Missing authorization token")

        token_payload = self.auth_service.validate_token(token)
        if self.is_token_blocked(token_payload):
            raise TokenRevokedError("Token has been revoked")

        return self.build_actor_context(token_payload, RequestParser.get_request_metadata())


def require_auth(auth_middleware: AuthMiddleware) -> Callable:
    """
    Decorator to require JWT authentication for Flask routes.

    The actor context is stored in `g.user_context`.

    Args:
        auth_middleware: Configured AuthMiddleware instance

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            with tracer.start_as_current_span("auth.middleware.validate_request") as span:
                span.set_attribute("auth.operation", "validate_request")

                try:
                    actor = auth_middleware.authenticate()
                except MissingTokenError as e:
                    span.set_attribute("auth.result", "missing_token")
                    logger.warning("Authentication failed: missing token", extra={"path": request.path})
                    return _auth_problem("authentication-required", "Authentication Required", str(e))
                except TokenRevokedError as e:
                    span.set_attribute("auth.result", "token_blocked")
                    logger.warning("Authentication failed: token is blocked", extra={"path": request.path})
                    return _auth_problem("token-revoked", "Token Revoked", str(e))
                except TokenValidationError as e:
                    span.set_attribute("auth.result", "invalid_token")
                    logger.warning(f"Authentication failed: {str(e)}", extra={"path": request.path})
                    return _auth_problem("invalid-token", "Invalid Token", str(e))

                g.user_context = actor
                span.set_attributes({
                    "auth.result": "success",
                    "account.id": actor.account_id,
                    "account.role": actor.role
                })
                logger.debug(
                    "Authentication successful",
                    extra={"account_id": actor.account_id, "ip_address": actor.ip_address}
                )

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def optional_auth(auth_middleware: AuthMiddleware) -> Callable:
    """
    Decorator for optional authentication (actor context if a valid token is present).

    Args:
        auth_middleware: Configured AuthMiddleware instance

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            g.user_context = None
            if auth_middleware.extract_token_from_request():
                try:
                    g.user_context = auth_middleware.authenticate()
                except TokenValidationError as e:
                    logger.debug(f"Ignoring invalid token on optional auth route: {str(e)}")
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_jwt(f: Callable) -> Callable:
    """Require authentication using the application's auth middleware."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        return require_auth(current_app.auth_middleware)(f)(*args, **kwargs)
    return decorated_function


def optional_jwt(f: Callable) -> Callable:
    """Optional authentication using the application's auth middleware."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        return optional_auth(current_app.auth_middleware)(f)(*args, **kwargs)
    return decorated_function


def current_actor() -> Optional[ActorContext]:
    """Actor context of the current request, or None for anonymous callers."""
    return g.get('user_context')
