"""
Post-deploy assertions on cluster resources and application responses.
"""
import logging
from typing import Any, Dict, Optional

import requests

from deploy_verifier.adapters import HttpRequestType, make_http_request
from deploy_verifier.errors import ContentMismatch, RouteMissing, ServiceMissing, WorkloadMissing
from deploy_verifier.kube_types import ExpectedResourceSet, Route

logger = logging.getLogger(__name__)


class DeploymentValidator:
    """Checks that a deployed application and its resources are in place."""

    def __init__(self, kube_client, http_session: Optional[requests.Session] = None):
        self.kube_client = kube_client
        self.http_session = http_session

    @property
    def namespace(self) -> str:
        return self.kube_client.namespace

    def validate(self, app: str) -> ExpectedResourceSet:
        """Assert the workload, service and route of the application exist."""
        expected = ExpectedResourceSet.for_application(app)

        if self.kube_client.get_workload(expected.workload) is None:
            raise WorkloadMissing(expected.workload, self.namespace, app)
        if self.kube_client.get_service(expected.service) is None:
            raise ServiceMissing(expected.service, self.namespace, app)
        self.route(app)

        logger.info(f"✅ Workload, service and route present for {app}")
        return expected

    def route(self, app: str) -> Route:
        name = ExpectedResourceSet.for_application(app).route
        route = self.kube_client.get_route(name)
        if route is None or not route.host:
            raise RouteMissing(name, self.namespace, app)
        return route

    def route_url(self, app: str, path: str = "") -> str:
        return self.route(app).url(path)

    def fetch_json(self, url: str, query: Optional[Dict[str, str]] = None,
                   app: Optional[str] = None) -> Dict[str, Any]:
        response = make_http_request(HttpRequestType.GET, url, query=query, session=self.http_session)
        if not response.ok:
            raise ContentMismatch(url, "status", "2xx", response.status_code, app)
        try:
            body = response.json()
        except ValueError:
            raise ContentMismatch(url, "body", "JSON document", response.text[:200], app)
        if not isinstance(body, dict):
            raise ContentMismatch(url, "body", "JSON object", body, app)
        return body

    def assert_endpoint(self, app: str, path: str, key: str, expected: Any,
                        query: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """GET the application's endpoint and compare one field of the JSON body."""
        url = self.route_url(app, path)
        body = self.fetch_json(url, query, app)
        actual = body.get(key)
        if actual != expected:
            logger.error(f"❌ {url}: {key}={actual!r}, expected {expected!r}")
            raise ContentMismatch(url, key, expected, actual, app)
        logger.info(f"✅ {url} serves {key}={expected!r}")
        return body

    def workload_has_annotation(self, key: str) -> bool:
        """True when any workload in the namespace carries the annotation key."""
        for workload in self.kube_client.list_workloads():
            annotations = (workload.get("metadata") or {}).get("annotations") or {}
            if key in annotations:
                return True
        return False
