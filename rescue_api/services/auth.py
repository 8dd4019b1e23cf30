# SPDX-License-Identifier: Apache-2.0

"""
Authentication service for JWT token management and password hashing.

Session tokens are HS256-signed bearer tokens carrying the account id, role
and a unique token id used for logout blocklisting. Passwords are hashed
with bcrypt.
"""

import os
import uuid
import jwt
import bcrypt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from opentelemetry import trace
import logging

from ..models.entities import Account
from ..models.responses import TokenResponse

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

DEV_SECRET = "rescue-roots-development-secret-change-me"


class AuthenticationError(Exception):
    """Raised when token generation fails."""
    pass


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


class AuthService:
    """
    JWT authentication service with HS256 signing and bcrypt password hashing.
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        expires_hours: Optional[int] = None,
        bcrypt_rounds: Optional[int] = None
    ):
        """
        Initialize the authentication service.

        Args:
            secret: HMAC signing secret (defaults to JWT_SECRET)
            expires_hours: Token lifetime in hours (defaults to JWT_EXPIRES_HOURS)
            bcrypt_rounds: bcrypt cost factor (defaults to BCRYPT_ROUNDS)
        """
        self.secret = secret or self._get_secret()
        self.algorithm = "HS256"
        self.expires_hours = expires_hours or int(os.getenv("JWT_EXPIRES_HOURS", "168"))
        self.bcrypt_rounds = bcrypt_rounds or int(os.getenv("BCRYPT_ROUNDS", "12"))

    def _get_secret(self) -> str:
        """Get signing secret from environment or fall back to a development value."""
        secret = os.getenv("JWT_SECRET")
        if secret:
            return secret

        logger.warning("No JWT_SECRET found, using development signing secret")
        return DEV_SECRET

    def hash_password(self, password: str) -> str:
        """
        Hash a password using bcrypt with salt.

        Args:
            password: Plain text password to hash

        Returns:
            Hashed password string
        """
        with tracer.start_as_current_span("auth.hash_password") as span:
            span.set_attribute("auth.operation", "hash_password")

            salt = bcrypt.gensalt(rounds=self.bcrypt_rounds)
            hashed = bcrypt.hashpw(password.encode('utf-8'), salt)

            logger.debug("Password hashed successfully")
            return hashed.decode('utf-8')

    def verify_password(self, password: str, hashed_password: str) -> bool:
        """
        Verify a password against its hash.

        Returns:
            True if password matches, False otherwise
        """
        with tracer.start_as_current_span("auth.verify_password") as span:
            span.set_attribute("auth.operation", "verify_password")

            try:
                result = bcrypt.checkpw(
                    password.encode('utf-8'),
                    hashed_password.encode('utf-8')
                )
            except ValueError as e:
                # Malformed stored hash
                span.set_attribute("auth.verification_result", "error")
                logger.error(f"Password verification error: {str(e)}")
                return False

            span.set_attribute("auth.verification_result", "success" if result else "failed")
            return result

    def generate_token(self, account: Account) -> Dict[str, Any]:
        """
        Generate a bearer session token for an account.

        Args:
            account: Account to issue the token for

        Returns:
            Dictionary with access_token, token_type and expires_in
        """
        with tracer.start_as_current_span("auth.generate_token") as span:
            span.set_attributes({
                "auth.operation": "generate_token",
                "account.id": account.id,
                "account.role": account.role
            })

            now = datetime.now(timezone.utc)
            expires_at = now + timedelta(hours=self.expires_hours)
            payload = {
                "sub": account.id,
                "role": account.role,
                "email": account.email,
                "name": account.name,
                "iat": now,
                "exp": expires_at,
                "jti": uuid.uuid4().hex,
                "type": "access"
            }

            try:
                token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
            except jwt.PyJWTError as e:
                span.set_attribute("auth.token_generated", "error")
                logger.error(f"Token generation failed: {str(e)}")
                raise AuthenticationError(f"Failed to generate token: {str(e)}")

            logger.info(
                "JWT token generated",
                extra={
                    "account_id": account.id,
                    "role": account.role,
                    "expires_at": expires_at.isoformat()
                }
            )

            return TokenResponse(
                access_token=token,
                expires_in=self.expires_hours * 3600
            ).model_dump()

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate and decode a JWT token.

        Args:
            token: JWT token string to validate

        Returns:
            Decoded token payload

        Raises:
            TokenValidationError: If token is invalid or expired
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            span.set_attribute("auth.operation", "validate_token")

            try:
                payload = jwt.decode(
                    token,
                    self.secret,
                    algorithms=[self.algorithm],
                    options={"verify_exp": True, "require": ["sub", "exp", "jti"]}
                )
            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise TokenValidationError("Token has expired")
            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise TokenValidationError(f"Invalid token: {str(e)}")

            if payload.get("type") != "access":
                span.set_attribute("auth.validation_result", "invalid")
                raise TokenValidationError("Invalid token type")

            span.set_attributes({
                "auth.validation_result": "success",
                "account.id": payload.get("sub")
            })
            return payload

    def extract_token_id(self, token: str) -> str:
        """
        Extract the unique identifier of a token for blocklist purposes.

        Raises:
            TokenValidationError: If the token cannot be decoded
        """
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError as e:
            logger.error(f"Failed to extract token ID: {str(e)}")
            raise TokenValidationError(f"Invalid token format: {str(e)}")

        token_id = payload.get("jti")
        if not token_id:
            raise TokenValidationError("Token has no identifier")
        return token_id
