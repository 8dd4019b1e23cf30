# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Implements HATEOAS Level-3 API responses with conditional affordance links.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import urlencode, urljoin

from ..domain.authorization import Action, authorize
from ..models.base import BaseEntity
from ..models.entities import ActorContext, AdoptionApplication, Dog, RescueReport
from ..models.enums import ApplicationStatus, DogStatus, ReportStatus
from ..models.responses import HalLink

PROBLEM_BASE_URL = "https://api.rescue-roots.org/problems"


def to_json(entity: BaseEntity) -> Dict[str, Any]:
    """Serialize an entity for a response body (camelCase keys)."""
    return entity.model_dump(mode='json', by_alias=True)


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/') + '/'

    def build_link(
        self,
        path: str,
        method: str = "GET",
        content_type: Optional[str] = None,
        title: Optional[str] = None,
        templated: bool = False
    ) -> HalLink:
        """Build a HAL link with proper URL construction."""
        href = urljoin(self.base_url, path.lstrip('/'))

        return HalLink(
            href=href,
            method=method,
            type=content_type,
            title=title,
            templated=templated or None
        )

    def build_self_link(self, resource_path: str) -> HalLink:
        """Build self link for a resource."""
        return self.build_link(resource_path, title="Self")

    def build_collection_link(self, collection_path: str) -> HalLink:
        """Build link to parent collection."""
        return self.build_link(collection_path, title="Collection")

    def build_action_link(
        self,
        resource_path: str,
        action: str,
        method: str = "POST",
        title: Optional[str] = None
    ) -> HalLink:
        """Build action link for a resource."""
        action_path = f"{resource_path}/{action}"
        return self.build_link(
            action_path,
            method=method,
            content_type="application/json",
            title=title or action.replace('-', ' ').title()
        )


class AffordanceLinkBuilder:
    """Builder for conditional affordance links based on the guard and entity state."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def _allowed(self, actor: Optional[ActorContext], action: Action, target: Any = None) -> bool:
        return authorize(actor, action, target).allowed

    def build_dog_affordances(self, dog: Dog, actor: Optional[ActorContext]) -> Dict[str, HalLink]:
        """Build conditional affordance links for a dog."""
        base_path = f"/api/dogs/{dog.id}"
        links = {
            'self': self.link_builder.build_self_link(base_path),
            'collection': self.link_builder.build_collection_link("/api/dogs")
        }

        if dog.status == DogStatus.ADOPTED:
            return links

        if dog.status == DogStatus.ADOPTABLE and self._allowed(actor, Action.SUBMIT_APPLICATION):
            links['apply'] = self.link_builder.build_link(
                "/api/adoptions",
                method="POST",
                content_type="application/json",
                title="Apply to adopt"
            )

        if self._allowed(actor, Action.UPDATE_DOG):
            links['edit'] = self.link_builder.build_link(
                base_path,
                method="PATCH",
                content_type="application/json",
                title="Edit dog"
            )
        if not dog.from_report_id and self._allowed(actor, Action.DELETE_DOG):
            links['delete'] = self.link_builder.build_link(base_path, method="DELETE", title="Delete dog")
        if self._allowed(actor, Action.ASSIGN_VET):
            links['assign-vet'] = self.link_builder.build_action_link(
                base_path, "vet", method="PUT", title="Assign veterinarian"
            )
        if self._allowed(actor, Action.SET_TREATMENT_STATUS, dog):
            links['treatment'] = self.link_builder.build_action_link(
                base_path, "treatment", method="PUT", title="Update treatment"
            )
        if self._allowed(actor, Action.RECORD_MEDICAL, dog):
            links['record-medical'] = self.link_builder.build_action_link(
                base_path, "medical-records", title="Record medical event"
            )
        if self._allowed(actor, Action.VIEW_MEDICAL_RECORDS):
            links['medical-records'] = self.link_builder.build_link(
                f"{base_path}/medical-records",
                title="Medical records"
            )

        return links

    def build_report_affordances(self, report: RescueReport, actor: Optional[ActorContext]) -> Dict[str, HalLink]:
        """Build conditional affordance links for a rescue report."""
        base_path = f"/api/reports/{report.id}"
        links = {
            'self': self.link_builder.build_self_link(base_path),
            'collection': self.link_builder.build_collection_link("/api/reports")
        }

        if report.dog_id:
            links['dog'] = self.link_builder.build_link(f"/api/dogs/{report.dog_id}", title="Rescued dog")

        if report.status in (ReportStatus.COMPLETED, ReportStatus.CANCELLED):
            return links

        if self._allowed(actor, Action.SET_REPORT_STATUS):
            links['status'] = self.link_builder.build_action_link(
                base_path, "status", method="PUT", title="Update status"
            )
        if self._allowed(actor, Action.ASSIGN_REPORT):
            links['assign'] = self.link_builder.build_action_link(
                base_path, "assign", method="PUT", title="Assign volunteer"
            )
        if not report.dog_id and self._allowed(actor, Action.PROMOTE_REPORT):
            links['promote'] = self.link_builder.build_action_link(
                base_path, "promote", title="Create rescue case"
            )

        return links

    def build_application_affordances(
        self,
        application: AdoptionApplication,
        actor: Optional[ActorContext]
    ) -> Dict[str, HalLink]:
        """Build conditional affordance links for an adoption application."""
        base_path = f"/api/adoptions/{application.id}"
        links = {
            'self': self.link_builder.build_self_link(base_path),
            'dog': self.link_builder.build_link(f"/api/dogs/{application.dog_id}", title="Dog")
        }

        terminal = application.status in (ApplicationStatus.APPROVED, ApplicationStatus.REJECTED)
        if not terminal and self._allowed(actor, Action.DECIDE_APPLICATION, application):
            links['decide'] = self.link_builder.build_action_link(
                base_path, "status", method="PUT", title="Review application"
            )

        return links


class HalResponseBuilder:
    """Main HAL response builder with comprehensive formatting capabilities."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.link_builder = HalLinkBuilder(base_url)
        self.affordance_builder = AffordanceLinkBuilder(base_url)

    def build_resource_response(self, data: Dict[str, Any], links: Dict[str, HalLink]) -> Dict[str, Any]:
        """Attach HAL links to a resource representation."""
        response = dict(data)
        response['_links'] = {rel: link.model_dump(exclude_none=True) for rel, link in links.items()}
        return response

    def build_collection_response(
        self,
        items: List[Dict[str, Any]],
        collection_path: str,
        query_params: Optional[Dict[str, Any]] = None,
        extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build a HAL collection response."""
        params = {k: v for k, v in (query_params or {}).items() if v not in (None, '', False)}
        self_path = f"{collection_path}?{urlencode(params)}" if params else collection_path

        response = {
            'total': len(items),
            '_links': {
                'self': self.link_builder.build_link(self_path, title="Current page").model_dump(exclude_none=True)
            },
            '_embedded': {
                'items': items
            }
        }
        if extra:
            response.update(extra)
        return response

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response with HAL links."""
        error_response = {
            'type': f"{PROBLEM_BASE_URL}/{error_type}",
            'title': title,
            'status': status,
            'detail': detail,
            'instance': instance
        }

        if validation_errors:
            error_response['errors'] = validation_errors

        links = {
            'help': self.link_builder.build_link(
                f"/docs/errors#{error_type}",
                title="Error documentation"
            )
        }

        if error_type == "validation-error":
            links['schema'] = self.link_builder.build_link(
                "/openapi/openapi.json",
                title="API schema"
            )
        elif error_type in ("authentication-required", "invalid-token", "token-revoked"):
            links['login'] = self.link_builder.build_link(
                "/api/auth/login",
                method="POST",
                content_type="application/json",
                title="Login"
            )
        elif error_type == "account-not-approved":
            links['forgot-password'] = self.link_builder.build_link(
                "/api/auth/forgot-password",
                method="POST",
                content_type="application/json",
                title="Reset password"
            )

        error_response['_links'] = {rel: link.model_dump(exclude_none=True) for rel, link in links.items()}
        return error_response


class HalFormatter:
    """High-level HAL formatter with convenience methods."""

    def __init__(self, base_url: str):
        self.builder = HalResponseBuilder(base_url)

    # Resources

    def format_dog(self, dog: Dog, actor: Optional[ActorContext]) -> Dict[str, Any]:
        """Format a dog with HAL links."""
        links = self.builder.affordance_builder.build_dog_affordances(dog, actor)
        return self.builder.build_resource_response(to_json(dog), links)

    def format_dog_collection(
        self,
        dogs: List[Dog],
        actor: Optional[ActorContext],
        filters: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Format a collection of dogs with HAL links."""
        items = [self.format_dog(dog, actor) for dog in dogs]
        return self.builder.build_collection_response(items, "/api/dogs", filters)

    def format_report(self, report: RescueReport, actor: Optional[ActorContext]) -> Dict[str, Any]:
        """Format a rescue report with HAL links."""
        links = self.builder.affordance_builder.build_report_affordances(report, actor)
        return self.builder.build_resource_response(to_json(report), links)

    def format_report_collection(
        self,
        reports: List[RescueReport],
        actor: Optional[ActorContext],
        collection_path: str = "/api/reports",
        filters: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Format a collection of reports with HAL links."""
        items = [self.format_report(report, actor) for report in reports]
        return self.builder.build_collection_response(items, collection_path, filters)

    def format_application(
        self,
        application: AdoptionApplication,
        actor: Optional[ActorContext]
    ) -> Dict[str, Any]:
        """Format an adoption application with HAL links."""
        links = self.builder.affordance_builder.build_application_affordances(application, actor)
        return self.builder.build_resource_response(to_json(application), links)

    def format_application_collection(
        self,
        applications: List[AdoptionApplication],
        actor: Optional[ActorContext],
        collection_path: str,
        filters: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Format a collection of applications with HAL links."""
        items = [self.format_application(application, actor) for application in applications]
        return self.builder.build_collection_response(items, collection_path, filters)

    def format_account(self, account: Dict[str, Any], collection_path: str = "/api/auth/me") -> Dict[str, Any]:
        """Format a public account representation."""
        links = {'self': self.builder.link_builder.build_self_link(collection_path)}
        return self.builder.build_resource_response(account, links)

    def format_ngo(self, detail: Dict[str, Any], actor: Optional[ActorContext]) -> Dict[str, Any]:
        """Format an organization with its recent dogs and reports embedded."""
        ngo = detail['ngo']
        links = {
            'self': self.builder.link_builder.build_self_link(f"/api/ngos/{ngo['id']}"),
            'collection': self.builder.link_builder.build_link("/api/ngos", title="Organizations")
        }
        response = self.builder.build_resource_response(ngo, links)
        response['_embedded'] = {
            'dogs': [self.format_dog(dog, actor) for dog in detail['dogs']],
            'reports': [self.format_report(report, actor) for report in detail['reports']]
        }
        return response

    def format_collection(
        self,
        items: List[Any],
        collection_path: str,
        filters: Optional[Dict[str, Any]] = None,
        extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Format a plain collection of entities or dictionaries."""
        serialized = [to_json(item) if isinstance(item, BaseEntity) else item for item in items]
        return self.builder.build_collection_response(serialized, collection_path, filters, extra)

    # Errors

    def format_validation_error(
        self,
        detail: str,
        instance: str,
        validation_errors: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Format a validation error response."""
        return self.builder.build_error_response(
            "validation-error",
            "Validation Error",
            400,
            detail,
            instance,
            validation_errors
        )

    def format_authentication_error(
        self,
        detail: str,
        instance: str,
        error_type: str = "authentication-required",
        title: str = "Authentication Required"
    ) -> Dict[str, Any]:
        """Format an authentication error response."""
        return self.builder.build_error_response(error_type, title, 401, detail, instance)

    def format_authorization_error(
        self,
        detail: str,
        instance: str
    ) -> Dict[str, Any]:
        """Format an authorization error response."""
        return self.builder.build_error_response(
            "insufficient-permissions",
            "Insufficient Permissions",
            403,
            detail,
            instance
        )

    def format_account_not_approved_error(
        self,
        detail: str,
        instance: str,
        reason_code: str,
        rejection_reason: Optional[str] = None
    ) -> Dict[str, Any]:
        """Format a login refusal for an unverified gated account."""
        response = self.builder.build_error_response(
            "account-not-approved",
            "Account Not Approved",
            403,
            detail,
            instance
        )
        response['reasonCode'] = reason_code
        if rejection_reason:
            response['reason'] = rejection_reason
        return response

    def format_not_found_error(
        self,
        detail: str,
        instance: str
    ) -> Dict[str, Any]:
        """Format a not found error response."""
        return self.builder.build_error_response(
            "resource-not-found",
            "Resource Not Found",
            404,
            detail,
            instance
        )

    def format_conflict_error(
        self,
        detail: str,
        instance: str
    ) -> Dict[str, Any]:
        """Format a conflict error response."""
        return self.builder.build_error_response(
            "resource-conflict",
            "Resource Conflict",
            409,
            detail,
            instance
        )

    def format_service_unavailable_error(
        self,
        detail: str,
        instance: str
    ) -> Dict[str, Any]:
        """Format a service unavailable error response."""
        return self.builder.build_error_response(
            "service-unavailable",
            "Service Unavailable",
            503,
            detail,
            instance
        )

    def format_server_error(
        self,
        detail: str,
        instance: str
    ) -> Dict[str, Any]:
        """Format a server error response."""
        return self.builder.build_error_response(
            "internal-server-error",
            "Internal Server Error",
            500,
            detail,
            instance
        )


def create_hal_formatter(base_url: str) -> HalFormatter:
    """Create a HAL formatter instance."""
    return HalFormatter(base_url)
