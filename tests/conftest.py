"""
Test configuration and fixtures for pytest.

Provides an in-memory stand-in for the namespace-scoped cluster client, a fake
Maven build that "deploys" the cloned sample project into it, and a fake HTTP
session answering like the booster applications.
"""

import sys
from pathlib import Path

import pytest

# Add the repository root to sys.path
repo_dir = Path(__file__).parent.parent
sys.path.insert(0, str(repo_dir))

from deploy_verifier.kube_types import PodObservation, Route
from deploy_verifier.pom import PomDescriptor


SAMPLE_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <modelVersion>4.0.0</modelVersion>
  <parent>
    <groupId>io.openshift</groupId>
    <artifactId>booster-parent</artifactId>
    <version>23</version>
  </parent>
  <artifactId>{artifact_id}</artifactId>
  <dependencies>
    <dependency>
      <groupId>io.vertx</groupId>
      <artifactId>vertx-web</artifactId>
      <version>3.5.0</version>
    </dependency>
  </dependencies>
  <profiles>
    <profile>
      <id>local</id>
    </profile>
    <profile>
      <id>openshift</id>
      <build>
        <plugins>
          <plugin>
            <groupId>io.fabric8</groupId>
            <artifactId>fabric8-maven-plugin</artifactId>
            <version>3.5.30</version>
          </plugin>
        </plugins>
      </build>
    </profile>
  </profiles>
</project>
"""


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "kubernetes: mark test as requiring a Kubernetes/OpenShift cluster")


def pod(name, ready=True, annotations=None, phase=None, app="demo"):
    return PodObservation(
        name=name,
        ready=ready,
        phase=phase or ("Running" if ready else "Pending"),
        annotations=annotations or {},
        labels={"app": app},
    )


class FakeKubeClient:
    """In-memory cluster scoped to one namespace."""

    def __init__(self, namespace="verify-ns"):
        self.namespace = namespace
        self.pods = []
        self.poll_script = []
        self.config_maps = {}
        self.workloads = {}
        self.services = {}
        self.routes = {}
        self.calls = []
        self.granted = []
        self.closed = False

    def list_application_pods(self, app):
        self.calls.append(("list_pods", app))
        if self.poll_script:
            return list(self.poll_script.pop(0))
        return list(self.pods)

    def get_config_map(self, name):
        data = self.config_maps.get(name)
        return dict(data) if data is not None else None

    def create_config_map(self, name, data):
        self.calls.append(("create_config_map", name))
        self.config_maps[name] = dict(data)

    def replace_config_map(self, name, data):
        self.calls.append(("replace_config_map", name))
        self.config_maps[name] = dict(data)

    def delete_config_map(self, name):
        self.calls.append(("delete_config_map", name))
        return self.config_maps.pop(name, None) is not None

    def get_workload(self, name):
        return self.workloads.get(name)

    def list_workloads(self):
        return list(self.workloads.values())

    def get_service(self, name):
        return self.services.get(name)

    def get_route(self, name):
        return self.routes.get(name)

    def grant_view_role(self, service_account="default"):
        self.granted.append(service_account)

    def close(self):
        self.closed = True

    def install(self, app, annotations=None):
        """Register workload, service and route for an application."""
        self.workloads[app] = {"metadata": {"name": app, "annotations": dict(annotations or {})}}
        self.services[app] = {"metadata": {"name": app}}
        self.routes[app] = Route(name=app, host=f"{app}-{self.namespace}.apps.example.com")


class FakeCloner:
    """Writes a sample project instead of cloning one."""

    instances = []

    def __init__(self, repository_url, root, relative_pom_path, artifact_id):
        self.repository_url = repository_url
        self.root = root
        self.relative_pom_path = relative_pom_path
        self.artifact_id = artifact_id
        self.removed = False
        FakeCloner.instances.append(self)

    def clone(self):
        pom_path = self.root / self.relative_pom_path
        pom_path.parent.mkdir(parents=True, exist_ok=True)
        pom_path.write_text(SAMPLE_POM.format(artifact_id=self.artifact_id))
        return self.root

    def remove(self):
        self.removed = True


def pod_annotations(pom_path):
    """Pod annotations the plugin would generate from the openshift profile."""
    descriptor = PomDescriptor.read(pom_path)
    configuration = descriptor.plugin_configuration("openshift", "io.fabric8:fabric8-maven-plugin")
    if configuration is None:
        return {}
    tag = descriptor.tag
    pod_section = configuration.find(f"{tag('resources')}/{tag('annotations')}/{tag('pod')}")
    if pod_section is None:
        return {}
    annotations = {}
    for prop in pod_section.iter(tag("property")):
        annotations[prop.findtext(tag("name"))] = prop.findtext(tag("value"))
    return annotations


class FakeBuild:
    """Deploys the sample project into a FakeKubeClient.

    Pods of earlier deployments stay ready, as they would while a rollout is in
    progress.
    """

    def __init__(self, kube, relative_pom_path, exit_codes=None):
        self.kube = kube
        self.relative_pom_path = relative_pom_path
        self.exit_codes = list(exit_codes or [])
        self.runs = []

    def run(self, project_dir, goals, profiles="", app=None):
        from deploy_verifier.errors import BuildFailure

        self.runs.append((project_dir, goals, profiles))
        exit_code = self.exit_codes.pop(0) if self.exit_codes else 0
        if exit_code != 0:
            raise BuildFailure(exit_code, goals, profiles, app)

        pom_path = Path(project_dir) / self.relative_pom_path
        app_name = PomDescriptor.read(pom_path).artifact_id
        annotations = pod_annotations(pom_path)
        self.kube.pods.append(pod(f"{app_name}-{len(self.runs)}-abcde", annotations=annotations, app=app_name))
        self.kube.install(app_name, annotations)


class FakeResponse:
    def __init__(self, status_code, body, url):
        self.status_code = status_code
        self._body = body
        self.url = url
        self.text = str(body)

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if isinstance(self._body, str):
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeGreetingService:
    """Answers /api/greeting like the booster applications do."""

    def __init__(self, kube=None, config_map="app-config", key="application.properties"):
        self.kube = kube
        self.config_map = config_map
        self.key = key
        self.requests = []

    def request(self, method, url, params=None, timeout=None, **kwargs):
        self.requests.append((method, url, params))
        if self.kube is not None:
            properties = self.kube.config_maps.get(self.config_map, {}).get(self.key, "")
            content = properties.split("greeting.message:", 1)[-1].strip()
        else:
            content = f"Hello, {(params or {}).get('name', 'World')}!"
        return FakeResponse(200, {"id": len(self.requests), "content": content}, url)


@pytest.fixture
def sample_pom_text():
    return SAMPLE_POM


@pytest.fixture
def make_pod():
    return pod


@pytest.fixture
def fake_kube():
    return FakeKubeClient()


@pytest.fixture
def session_factory(tmp_path, fake_kube):
    """Build a DeploymentSession wired to the fakes for a given sample project."""
    from deploy_verifier.orchestrator import DeploymentSession
    from deploy_verifier.readiness import ReadinessPoller
    from deploy_verifier.validator import DeploymentValidator

    FakeCloner.instances.clear()

    def factory(artifact_id="demo", relative_pom_path="pom.xml", http=None, exit_codes=None, attempts=3):
        sleeps = []
        build = FakeBuild(fake_kube, relative_pom_path, exit_codes)
        session = DeploymentSession(
            kube_client=fake_kube,
            cloner_factory=lambda url: FakeCloner(url, tmp_path, relative_pom_path, artifact_id),
            build=build,
            poller=ReadinessPoller(fake_kube, attempts=attempts, interval=5, sleep=sleeps.append),
            validator=DeploymentValidator(fake_kube, http_session=http or FakeGreetingService()),
            plugin_version="4.0.0-SNAPSHOT",
            settle_delay=20,
            sleep=sleeps.append,
        )
        session.sleeps = sleeps
        session.fake_build = build
        return session

    return factory


@pytest.fixture
def fake_cloners():
    return FakeCloner.instances


@pytest.fixture
def greeting_service():
    return FakeGreetingService
