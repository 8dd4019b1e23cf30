# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request utilities for extracting and processing request data.
"""

from flask import request
from pydantic import BaseModel, ValidationError
from typing import Any, Dict, Optional, Type, TypeVar
import logging

from ..domain.errors import ValidationException

logger = logging.getLogger(__name__)

M = TypeVar('M', bound=BaseModel)


class RequestParser:
    """Utility for parsing and extracting request data."""

    @staticmethod
    def parse_json_body(required: bool = True) -> Optional[Dict[str, Any]]:
        """
        Parse JSON request body with error handling.

        Args:
            required: Whether JSON body is required

        Returns:
            Parsed JSON data or None

        Raises:
            ValidationException: If JSON is required but missing or invalid
        """
        data = request.get_json(silent=True)
        if data is None:
            if required:
                raise ValidationException("Request body must be a JSON object")
            return None
        if not isinstance(data, dict):
            raise ValidationException("Request body must be a JSON object")
        return data

    @staticmethod
    def parse_model(model_cls: Type[M], required: bool = True) -> M:
        """
        Validate the JSON body against a request model.

        Raises:
            ValidationException: Listing each invalid field
        """
        data = RequestParser.parse_json_body(required) or {}
        try:
            return model_cls.model_validate(data)
        except ValidationError as e:
            logger.info(
                f"Request validation failed for {model_cls.__name__}",
                extra={"path": request.path, "error_count": e.error_count()}
            )
            raise ValidationException.from_pydantic(e)

    @staticmethod
    def get_limit(default: int = 50, maximum: int = 200) -> int:
        """Read the `limit` query parameter, clamped to [1, maximum]."""
        try:
            limit = int(request.args.get('limit', default))
        except (ValueError, TypeError):
            raise ValidationException(
                "Invalid limit parameter",
                [{"field": "limit", "message": "Must be an integer", "type": "int_parsing"}]
            )
        return max(1, min(limit, maximum))

    @staticmethod
    def get_bool_arg(name: str, default: bool = False) -> bool:
        """Read a boolean query parameter."""
        value = request.args.get(name)
        if value is None:
            return default
        return value.lower() in ['true', '1', 'yes', 'on']

    @staticmethod
    def get_request_metadata() -> Dict[str, Any]:
        """
        Extract request metadata for logging and actor context.

        Returns:
            Dictionary with request metadata
        """
        return {
            'ip_address': request.remote_addr,
            'user_agent': request.headers.get('User-Agent', ''),
            'request_id': request.headers.get('X-Request-ID')
        }
