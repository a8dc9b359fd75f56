"""
Kubernetes client for deployment verification.
"""
import logging
from pathlib import Path
from typing import List, Optional, Dict, Any
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from deploy_verifier.config import settings
from deploy_verifier.kube_types import PodObservation, Route

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"

DEPLOYMENT_CONFIG = ("apps.openshift.io", "v1", "deploymentconfigs")
ROUTE = ("route.openshift.io", "v1", "routes")


def _not_found(e: ApiException) -> bool:
    return e.status == 404


def is_pod_ready(pod: Any) -> bool:
    """A pod is ready when its Ready condition is True."""
    conditions = (pod.status.conditions if pod.status else None) or []
    return any(c.type == "Ready" and c.status == "True" for c in conditions)


def to_observation(pod: Any) -> PodObservation:
    metadata = pod.metadata
    return PodObservation(
        name=metadata.name,
        ready=is_pod_ready(pod),
        phase=(pod.status.phase if pod.status else None) or "Unknown",
        annotations=dict(metadata.annotations or {}),
        labels=dict(metadata.labels or {}),
    )


def resolve_namespace(in_cluster: bool, context: Optional[str] = None) -> str:
    """Namespace of the service account, or of the selected kube-config context."""
    if in_cluster:
        path = Path(SERVICE_ACCOUNT_NAMESPACE_FILE)
        if path.exists():
            return path.read_text().strip()
        return "default"

    contexts, active_context = config.list_kube_config_contexts()
    selected = active_context
    if context:
        selected = next((c for c in contexts if c.get("name") == context), active_context)
    if selected:
        return selected.get("context", {}).get("namespace") or "default"
    return "default"


class KubeClient:
    """Namespace-scoped Kubernetes/OpenShift client for verification runs."""

    def __init__(self, namespace: Optional[str] = None, in_cluster: Optional[bool] = None,
                 context: Optional[str] = None, workload_kind: Optional[str] = None):
        """
        Initialize Kubernetes client.

        Args:
            namespace: Target namespace (default: from settings, then from the kube context)
            in_cluster: Whether running inside cluster
            context: Kubernetes context name (optional)
            workload_kind: DeploymentConfig or Deployment
        """
        self.in_cluster = settings.K8S_IN_CLUSTER if in_cluster is None else in_cluster
        context = context or settings.K8S_CONTEXT
        self.workload_kind = workload_kind or settings.WORKLOAD_KIND

        try:
            if self.in_cluster:
                config.load_incluster_config()
            else:
                if context:
                    config.load_kube_config(context=context)
                else:
                    config.load_kube_config()

            self.namespace = namespace or settings.K8S_NAMESPACE or resolve_namespace(self.in_cluster, context)
            self.api_client = client.ApiClient()
            self.v1 = client.CoreV1Api(self.api_client)
            self.apps_v1 = client.AppsV1Api(self.api_client)
            self.custom = client.CustomObjectsApi(self.api_client)
            self.rbac_v1 = client.RbacAuthorizationV1Api(self.api_client)
            logger.info(f"✅ Kubernetes client initialized for namespace: {self.namespace}")

        except Exception as e:
            logger.error(f"❌ Failed to initialize Kubernetes client: {e}")
            raise

    def close(self) -> None:
        self.api_client.close()

    # Pods

    def list_pods(self, label_selector: Optional[str] = None) -> List[PodObservation]:
        """
        Get pods in the namespace.

        Args:
            label_selector: Optional label selector for filtering

        Returns:
            List of PodObservation snapshots
        """
        try:
            pods = self.v1.list_namespaced_pod(
                namespace=self.namespace,
                label_selector=label_selector
            )
            observations = [to_observation(pod) for pod in pods.items]
            logger.debug(f"Retrieved {len(observations)} pods from namespace {self.namespace}")
            return observations

        except ApiException as e:
            logger.error(f"Failed to get pods: {e}")
            raise

    def list_application_pods(self, app: str) -> List[PodObservation]:
        return self.list_pods(label_selector=f"{settings.APP_LABEL_KEY}={app}")

    # ConfigMaps

    def get_config_map(self, name: str) -> Optional[Dict[str, str]]:
        """Data of a ConfigMap, or None when it does not exist."""
        try:
            config_map = self.v1.read_namespaced_config_map(name=name, namespace=self.namespace)
        except ApiException as e:
            if _not_found(e):
                return None
            logger.error(f"Failed to read ConfigMap {name}: {e}")
            raise
        return dict(config_map.data or {})

    def _config_map_body(self, name: str, data: Dict[str, str]) -> client.V1ConfigMap:
        return client.V1ConfigMap(
            api_version="v1",
            kind="ConfigMap",
            metadata=client.V1ObjectMeta(name=name, namespace=self.namespace),
            data=dict(data),
        )

    def create_config_map(self, name: str, data: Dict[str, str]) -> None:
        try:
            self.v1.create_namespaced_config_map(namespace=self.namespace, body=self._config_map_body(name, data))
            logger.info(f"✅ ConfigMap {name} created in {self.namespace}")
        except ApiException as e:
            logger.error(f"Failed to create ConfigMap {name}: {e}")
            raise

    def replace_config_map(self, name: str, data: Dict[str, str]) -> None:
        try:
            self.v1.replace_namespaced_config_map(
                name=name,
                namespace=self.namespace,
                body=self._config_map_body(name, data)
            )
            logger.info(f"✅ ConfigMap {name} replaced in {self.namespace}")
        except ApiException as e:
            logger.error(f"Failed to replace ConfigMap {name}: {e}")
            raise

    def delete_config_map(self, name: str) -> bool:
        """Delete a ConfigMap; returns False when it was already gone."""
        try:
            self.v1.delete_namespaced_config_map(name=name, namespace=self.namespace)
            logger.info(f"ConfigMap {name} deleted from {self.namespace}")
            return True
        except ApiException as e:
            if _not_found(e):
                return False
            logger.error(f"Failed to delete ConfigMap {name}: {e}")
            raise

    # Workloads, services and routes

    def get_workload(self, name: str) -> Optional[Dict[str, Any]]:
        """DeploymentConfig or Deployment named after the application."""
        try:
            if self.workload_kind == "Deployment":
                deployment = self.apps_v1.read_namespaced_deployment(name=name, namespace=self.namespace)
                return self.api_client.sanitize_for_serialization(deployment)
            group, version, plural = DEPLOYMENT_CONFIG
            return self.custom.get_namespaced_custom_object(group, version, self.namespace, plural, name)
        except ApiException as e:
            if _not_found(e):
                return None
            logger.error(f"Failed to get {self.workload_kind} {name}: {e}")
            raise

    def list_workloads(self) -> List[Dict[str, Any]]:
        try:
            if self.workload_kind == "Deployment":
                deployments = self.apps_v1.list_namespaced_deployment(namespace=self.namespace)
                return [self.api_client.sanitize_for_serialization(d) for d in deployments.items]
            group, version, plural = DEPLOYMENT_CONFIG
            return self.custom.list_namespaced_custom_object(group, version, self.namespace, plural).get("items", [])
        except ApiException as e:
            logger.error(f"Failed to list {self.workload_kind} objects: {e}")
            raise

    def get_service(self, name: str) -> Optional[Dict[str, Any]]:
        try:
            service = self.v1.read_namespaced_service(name=name, namespace=self.namespace)
        except ApiException as e:
            if _not_found(e):
                return None
            logger.error(f"Failed to get service {name}: {e}")
            raise
        return self.api_client.sanitize_for_serialization(service)

    def get_route(self, name: str) -> Optional[Route]:
        group, version, plural = ROUTE
        try:
            obj = self.custom.get_namespaced_custom_object(group, version, self.namespace, plural, name)
        except ApiException as e:
            if _not_found(e):
                return None
            logger.error(f"Failed to get route {name}: {e}")
            raise
        spec = obj.get("spec", {})
        return Route(
            name=obj.get("metadata", {}).get("name", name),
            host=spec.get("host", ""),
            path=spec.get("path"),
            tls=bool(spec.get("tls")),
        )

    # RBAC

    def grant_view_role(self, service_account: str = "default") -> None:
        """Bind the 'view' cluster role to a service account of the namespace."""
        binding_name = f"view-{service_account}"
        body = client.V1RoleBinding(
            metadata=client.V1ObjectMeta(name=binding_name, namespace=self.namespace),
            role_ref=client.V1RoleRef(api_group="rbac.authorization.k8s.io", kind="ClusterRole", name="view"),
            subjects=[
                client.RbacV1Subject(kind="ServiceAccount", name=service_account, namespace=self.namespace)
            ],
        )
        try:
            self.rbac_v1.create_namespaced_role_binding(namespace=self.namespace, body=body)
            logger.info(f"✅ Granted view role to service account {service_account}")
        except ApiException as e:
            if e.status == 409:
                logger.info(f"Role binding {binding_name} already exists")
                return
            logger.error(f"Failed to grant view role to {service_account}: {e}")
            raise
