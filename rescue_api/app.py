# SPDX-License-Identifier: Apache-2.0

"""
Rescue Roots API - Flask Application Entry Point

This module builds the Flask application with OpenAPI 3.0 support,
configures middleware, and wires the lifecycle services for the street-dog
rescue and adoption platform.
"""

import os
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional

from flask import jsonify, send_from_directory
from flask_openapi3 import Info, OpenAPI, Tag

from .domain.authorization import Action, require
from .middleware.auth import AuthMiddleware, current_actor, require_jwt
from .middleware.error_handler import ErrorHandlerMiddleware, register_custom_error_handlers
from .observability.config import setup_observability
from .observability.middleware import add_observability_middleware
from .services.accounts import AccountService
from .services.adoption import AdoptionService
from .services.amqp import EventPublisher, create_event_publisher
from .services.auth import AuthService
from .services.directory import DirectoryService
from .services.dispatcher import NotificationDispatcher
from .services.email import EmailSender, create_email_sender
from .services.hal import create_hal_formatter
from .services.health import HealthCheckService
from .services.mongodb import create_store
from .services.notifications import NotificationService
from .services.redis import RedisService, create_redis_service
from .services.rescue import RescueService
from .services.storage import DocumentUploader, LocalDocumentUploader, create_document_uploader
from .services.store import EntityStore

logger = logging.getLogger(__name__)

info = Info(
    title="Rescue Roots API",
    version="1.0.0",
    description="Street-dog rescue and adoption lifecycle API with HATEOAS Level-3 support"
)

health_tag = Tag(name="Health", description="System health and status")


def create_app(
    store: Optional[EntityStore] = None,
    auth_service: Optional[AuthService] = None,
    email_sender: Optional[EmailSender] = None,
    publisher: Optional[EventPublisher] = None,
    uploader: Optional[DocumentUploader] = None,
    redis_service: Optional[RedisService] = None,
    clock: Optional[Callable] = None,
    publish_executor: Optional[Executor] = None,
    config: Optional[dict] = None
) -> OpenAPI:
    """
    Build the Flask application.

    Collaborators not passed in are created from environment variables, so
    tests inject an in-memory store and recording fakes while deployments
    rely on the environment.

    Args:
        store: Entity store (defaults to the STORE_BACKEND selection)
        auth_service: Token and password service
        email_sender: Transactional email sender
        publisher: Lifecycle event publisher (None disables publishing)
        uploader: Verification document uploader
        redis_service: Token blocklist (None disables server-side logout)
        clock: Callable returning the current UTC time
        publish_executor: Background executor for broker publishing
        config: Extra Flask config values

    Returns:
        Configured OpenAPI (Flask) application
    """
    setup_observability()

    app = OpenAPI(__name__, info=info)

    # Environment configuration
    app.config['ENVIRONMENT'] = os.getenv('ENVIRONMENT', 'development')
    app.config['DEBUG'] = app.config['ENVIRONMENT'] == 'development'
    app.config['BASE_URL'] = os.getenv('BASE_URL', 'http://localhost:5000')
    app.config['STORE_BACKEND'] = os.getenv('STORE_BACKEND', 'mongodb')
    app.config['UPLOAD_DIR'] = os.getenv('UPLOAD_DIR', 'var/uploads')
    app.config['OTEL_ENABLED'] = os.getenv('OTEL_ENABLED', 'false').lower() == 'true'
    app.config['ALLOW_LEGACY_UNVERIFIED_LOGIN'] = (
        os.getenv('ALLOW_LEGACY_UNVERIFIED_LOGIN', 'true').lower() == 'true'
    )
    app.config['MAX_CONTENT_LENGTH'] = 8 * 1024 * 1024
    if config:
        app.config.update(config)

    add_observability_middleware(app)

    # Collaborators
    store = store if store is not None else create_store()
    auth_service = auth_service or AuthService()
    email_sender = email_sender or create_email_sender()
    if publisher is None:
        publisher = create_event_publisher()
    uploader = uploader or create_document_uploader()
    if redis_service is None:
        redis_service = create_redis_service()

    if publisher is not None and publish_executor is None:
        publish_executor = ThreadPoolExecutor(
            max_workers=int(os.getenv('AMQP_PUBLISH_WORKERS', '2')),
            thread_name_prefix='event-publisher'
        )

    dispatcher = NotificationDispatcher(store, email_sender, publisher, publish_executor)

    # Lifecycle services
    app.store = store
    app.auth_service = auth_service
    app.dispatcher = dispatcher
    app.publish_executor = publish_executor
    app.uploader = uploader
    app.rescue_service = RescueService(store, dispatcher, clock)
    app.adoption_service = AdoptionService(store, dispatcher, clock)
    app.account_service = AccountService(
        store,
        dispatcher,
        auth_service,
        uploader=uploader,
        redis_service=redis_service,
        clock=clock,
        allow_legacy_unverified=app.config['ALLOW_LEGACY_UNVERIFIED_LOGIN']
    )
    app.directory_service = DirectoryService(store, dispatcher, auth_service, clock)
    app.notification_service = NotificationService(store, clock)
    app.health_service = HealthCheckService(store, redis_service, publisher)

    # Middleware
    app.hal_formatter = create_hal_formatter(app.config['BASE_URL'])
    app.auth_middleware = AuthMiddleware(auth_service, redis_service)
    app.error_handler = ErrorHandlerMiddleware(app, app.hal_formatter)
    register_custom_error_handlers(app, app.hal_formatter)

    # Routes
    from .routes.adoptions import adoptions_bp
    from .routes.auth import auth_bp
    from .routes.dogs import dogs_bp, vets_bp
    from .routes.ngos import ngos_bp
    from .routes.notifications import notifications_bp
    from .routes.profile import profile_bp
    from .routes.reports import reports_bp
    from .routes.verifications import verifications_bp
    from .routes.volunteers import volunteers_bp

    app.register_api(auth_bp)
    app.register_api(dogs_bp)
    app.register_api(vets_bp)
    app.register_api(reports_bp)
    app.register_api(adoptions_bp)
    app.register_api(verifications_bp)
    app.register_api(notifications_bp)
    app.register_api(profile_bp)
    app.register_api(ngos_bp)
    app.register_api(volunteers_bp)

    @app.get('/api/healthz', tags=[health_tag])
    def health_check():
        """Health check with dependency monitoring."""
        health_data = app.health_service.get_comprehensive_health()
        status_code = 503 if health_data["status"] == "unhealthy" else 200

        health_response = app.hal_formatter.builder.build_resource_response(
            health_data,
            {'self': app.hal_formatter.builder.link_builder.build_self_link('/api/healthz')}
        )
        return jsonify(health_response), status_code

    if isinstance(uploader, LocalDocumentUploader):
        upload_dir = Path(uploader.base_dir).resolve()

        @require_jwt
        def local_document(key: str):
            """Serve locally stored verification documents to superadmins."""
            require(current_actor(), Action.MANAGE_VERIFICATIONS)
            return send_from_directory(upload_dir, key)

        app.add_url_rule('/files/local/<path:key>', 'local_document', local_document)

    logger.info(
        "Application initialized",
        extra={"environment": app.config['ENVIRONMENT'], "store_backend": type(store).__name__}
    )
    return app


if __name__ == '__main__':
    # Development server
    application = create_app()
    application.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=application.config['DEBUG']
    )
