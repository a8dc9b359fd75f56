"""
Deployment session: build, wait, validate, mutate, redeploy and clean up.
"""
import logging
import time
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from deploy_verifier.adapters import GitCloner, MavenBuild
from deploy_verifier.config import settings
from deploy_verifier.config_store import ConfigDataStore
from deploy_verifier.errors import AssertionFailure, SetupError, StaleInstanceError, VerificationError
from deploy_verifier.kube_types import PodObservation, RedeploymentMarker
from deploy_verifier.pom import PomDescriptor
from deploy_verifier.readiness import ReadinessPoller
from deploy_verifier.validator import DeploymentValidator

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    DEPLOYED = "deployed"
    MUTATED = "mutated"
    REDEPLOYED = "redeployed"
    VALIDATED = "validated"
    FAILED = "failed"


ACTIVE_STATES = tuple(s for s in SessionState if s is not SessionState.FAILED)


def plugin_version_under_test(pom_path: Optional[str] = None) -> str:
    """PLUGIN_VERSION, or the version of the descriptor at PLUGIN_POM_PATH."""
    if settings.PLUGIN_VERSION:
        return settings.PLUGIN_VERSION
    version = PomDescriptor.read(pom_path or settings.PLUGIN_POM_PATH).version
    if not version:
        raise SetupError(f"No plugin version found in {pom_path or settings.PLUGIN_POM_PATH}")
    return version


class DeploymentSession:
    """One verification scenario against one namespace.

    Use as a context manager so that ConfigMaps created for the run, the cloned
    sample project and the cluster client are released whatever the outcome.
    """

    def __init__(self, kube_client=None, cloner_factory: Callable[[str], GitCloner] = GitCloner,
                 build: Optional[MavenBuild] = None, poller: Optional[ReadinessPoller] = None,
                 validator: Optional[DeploymentValidator] = None, plugin_version: Optional[str] = None,
                 settle_delay: Optional[float] = None, sleep: Callable[[float], None] = time.sleep):
        if kube_client is None:
            from deploy_verifier.kube_client import KubeClient
            kube_client = KubeClient()
        self.kube_client = kube_client
        self.cloner_factory = cloner_factory
        self.build = build or MavenBuild()
        self.poller = poller or ReadinessPoller(kube_client, sleep=sleep)
        self.validator = validator or DeploymentValidator(kube_client)
        self.config_store = ConfigDataStore(kube_client)
        self.plugin_version = plugin_version
        self.settle_delay = settings.SETTLE_DELAY_SECS if settle_delay is None else settle_delay
        self.sleep = sleep

        self.state = SessionState.UNINITIALIZED
        self.app: Optional[str] = None
        self.cloner: Optional[GitCloner] = None
        self.work_tree: Optional[Path] = None
        self.pom_path: Optional[Path] = None
        self.marker: Optional[RedeploymentMarker] = None
        self.observed_pods: List[PodObservation] = []
        self.config_maps: List[str] = []

    @property
    def namespace(self) -> str:
        return self.kube_client.namespace

    @property
    def plugin_key(self) -> str:
        return f"{settings.PLUGIN_GROUP_ID}:{settings.PLUGIN_ARTIFACT_ID}"

    def __enter__(self) -> "DeploymentSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    @contextmanager
    def _transition(self, *allowed: SessionState, target: Optional[SessionState] = None):
        if self.state not in allowed:
            raise VerificationError(
                f"Cannot leave state {self.state.value}; expected one of {[s.value for s in allowed]}",
                self.app,
            )
        try:
            yield
        except Exception:
            logger.error(f"❌ Scenario for {self.app or 'unknown application'} failed in state {self.state.value}")
            self.state = SessionState.FAILED
            raise
        if target is not None:
            logger.info(f"Session for {self.app}: {self.state.value} -> {target.value}")
            self.state = target

    def _require_app(self) -> str:
        if not self.app:
            raise VerificationError("Session has no sample project; call setup() first")
        return self.app

    # Setup

    def setup(self, repository_url: str, relative_pom_path: str = "pom.xml") -> str:
        """Clone the sample project and pin the plugin to the version under test.

        Returns the application name (the project's artifactId).
        """
        with self._transition(SessionState.UNINITIALIZED):
            if self.cloner is not None:
                raise VerificationError(f"Sample project already set up in {self.work_tree}", self.app)
            self.cloner = self.cloner_factory(repository_url)
            self.work_tree = Path(self.cloner.clone())
            self.pom_path = self.work_tree / relative_pom_path.lstrip("/")

            descriptor = PomDescriptor.read(self.pom_path)
            self.app = descriptor.artifact_id
            version = self.plugin_version or plugin_version_under_test()
            descriptor.set_plugin_version(self.plugin_key, version)
            descriptor.write()
            logger.info(f"✅ Sample project {self.app} ready in {self.work_tree} (namespace {self.namespace})")
        return self.app

    def grant_view_role(self, service_account: str = "default") -> None:
        with self._transition(SessionState.UNINITIALIZED, SessionState.DEPLOYED):
            self.kube_client.grant_view_role(service_account)

    def seed_config(self, name: str, data: Dict[str, str]) -> None:
        """Create or replace a ConfigMap that is deleted when the session closes."""
        with self._transition(*ACTIVE_STATES):
            self.config_store.create_or_replace(name, data)
            if name not in self.config_maps:
                self.config_maps.append(name)

    # Deploy

    def _settle(self) -> None:
        if self.settle_delay:
            logger.info(f"Waiting {self.settle_delay}s for services, routes and ConfigMaps to refresh")
            self.sleep(self.settle_delay)

    def _run_build(self, goals: str, profiles: str) -> None:
        if self.work_tree is None:
            raise VerificationError("Session has no sample project; call setup() first")
        self.build.run(self.work_tree, goals, profiles, app=self.app)

    def deploy(self, goals: str, profiles: str = "") -> PodObservation:
        """Build and deploy, then wait for a ready pod and validate resources."""
        with self._transition(SessionState.UNINITIALIZED, target=SessionState.DEPLOYED):
            app = self._require_app()
            self._run_build(goals, profiles)
            pod = self.poller.wait_for_ready(app)
            self.observed_pods.append(pod)
            self._settle()
            self.validator.validate(app)
        return pod

    def mutate(self, dependency: Optional[Tuple[str, str, str]] = None,
               marker: Optional[RedeploymentMarker] = None,
               config: Optional[Dict[str, Dict[str, str]]] = None) -> None:
        """
        Change the sample project and/or its ConfigMaps before a redeploy.

        Args:
            dependency: (groupId, artifactId, version) added to the project
            marker: Annotation added to the plugin configuration of the openshift profile
            config: ConfigMap name -> full data to create or replace
        """
        with self._transition(SessionState.DEPLOYED, target=SessionState.MUTATED):
            self._require_app()
            if dependency is not None or marker is not None:
                descriptor = PomDescriptor.read(self.pom_path)
                if dependency is not None:
                    descriptor.add_dependency(*dependency)
                if marker is not None:
                    descriptor.add_redeployment_annotations(
                        settings.OPENSHIFT_PROFILE, self.plugin_key, marker.key, marker.value
                    )
                    self.marker = marker
                descriptor.write()
            for name, data in (config or {}).items():
                self.seed_config(name, data)

    def redeploy(self, goals: str, profiles: str = "") -> PodObservation:
        """Rebuild the mutated project and verify the new instance."""
        with self._transition(SessionState.MUTATED, target=SessionState.REDEPLOYED):
            self._run_build(goals, profiles)
        return self.verify_redeployment()

    def verify_redeployment(self) -> PodObservation:
        with self._transition(SessionState.REDEPLOYED, target=SessionState.VALIDATED):
            app = self._require_app()
            pod = self.poller.wait_for_ready(app, self.marker)
            if self.marker is not None and any(p.name == pod.name for p in self.observed_pods):
                raise StaleInstanceError(pod.name, app)
            self.observed_pods.append(pod)
            self._settle()
            self.validator.validate(app)
            if self.marker is not None and not self.validator.workload_has_annotation(self.marker.key):
                raise AssertionFailure(f"No workload in {self.namespace} carries annotation {self.marker.key}", app)
        return pod

    # Content checks

    def assert_endpoint(self, path: str, key: str, expected: str,
                        query: Optional[Dict[str, str]] = None) -> None:
        with self._transition(*ACTIVE_STATES):
            self.validator.assert_endpoint(self._require_app(), path, key, expected, query)

    # Teardown

    def close(self) -> None:
        """Delete the session's ConfigMaps, remove the clone and close the client."""
        for name in self.config_maps:
            try:
                self.config_store.delete(name)
            except Exception as e:
                logger.error(f"❌ Failed to delete ConfigMap {name} during cleanup: {e}")
        self.config_maps = []

        if self.cloner is not None:
            self.cloner.remove()
            self.cloner = None

        try:
            self.kube_client.close()
        except Exception as e:
            logger.error(f"❌ Failed to close Kubernetes client: {e}")
        logger.info(f"Session for {self.app} closed in state {self.state.value}")
