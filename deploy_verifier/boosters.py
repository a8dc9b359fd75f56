"""
End-to-end scenarios deploying sample applications with the plugin under test.
"""
import logging
from dataclasses import dataclass
from typing import Dict

from deploy_verifier.kube_types import RedeploymentMarker
from deploy_verifier.orchestrator import DeploymentSession

logger = logging.getLogger(__name__)

# Dependency added to the sample project so the redeploy builds a changed artifact
EXTRA_DEPENDENCY = ("org.apache.commons", "commons-lang3", "3.5")


@dataclass(frozen=True)
class Booster:
    """Sample application deployed by a scenario."""
    repository_url: str
    relative_pom_path: str
    goals: str
    profiles: str
    endpoint: str


SPRING_BOOT_CONFIGMAP_BOOSTER = Booster(
    repository_url="https://github.com/snowdrop/spring-boot-configmap-booster.git",
    relative_pom_path="greeting-service/pom.xml",
    goals="fabric8:deploy -DskipTests",
    profiles="openshift",
    endpoint="/api/greeting",
)

VERTX_HTTP_BOOSTER = Booster(
    repository_url="https://github.com/openshiftio-vertx-boosters/vertx-http-booster.git",
    relative_pom_path="pom.xml",
    goals="fabric8:deploy",
    profiles="openshift",
    endpoint="/api/greeting",
)

CONFIGMAP_NAME = "app-config"
CONFIGMAP_KEY = "application.properties"
HELLO_MESSAGE = "Hello World from a ConfigMap!"
BONJOUR_MESSAGE = "Bonjour World from a ConfigMap!"

SPRING_BOOT_MARKER = RedeploymentMarker("springboot-testKey", "springboot-testValue")
VERTX_MARKER = RedeploymentMarker("vertx-testKey", "vertx-testValue")


def greeting_config(message: str) -> Dict[str, str]:
    return {CONFIGMAP_KEY: f"greeting.message: {message}"}


# Spring Boot ConfigMap booster

def deploy_configmap_booster_once(session: DeploymentSession, booster: Booster = SPRING_BOOT_CONFIGMAP_BOOSTER) -> None:
    """The application serves the greeting held in its ConfigMap."""
    session.setup(booster.repository_url, booster.relative_pom_path)
    session.grant_view_role()
    session.seed_config(CONFIGMAP_NAME, greeting_config(HELLO_MESSAGE))
    session.deploy(booster.goals, booster.profiles)
    session.assert_endpoint(booster.endpoint, "content", HELLO_MESSAGE)


def redeploy_configmap_booster(session: DeploymentSession, booster: Booster = SPRING_BOOT_CONFIGMAP_BOOSTER,
                               marker: RedeploymentMarker = SPRING_BOOT_MARKER) -> None:
    """After changing the ConfigMap and redeploying, the new greeting is served by a new pod."""
    deploy_configmap_booster_once(session, booster)

    session.mutate(
        dependency=EXTRA_DEPENDENCY,
        marker=marker,
        config={CONFIGMAP_NAME: greeting_config(BONJOUR_MESSAGE)},
    )
    pod = session.redeploy(booster.goals, booster.profiles)
    logger.info(f"Redeployed {session.app} observed through pod {pod.name}")
    session.assert_endpoint(booster.endpoint, "content", BONJOUR_MESSAGE)


# Vert.x HTTP booster

def assert_greetings(session: DeploymentSession, booster: Booster = VERTX_HTTP_BOOSTER) -> None:
    session.assert_endpoint(booster.endpoint, "content", "Hello, World!")
    # let's change default greeting message
    session.assert_endpoint(booster.endpoint, "content", "Hello, vertx!", query={"name": "vertx"})


def deploy_vertx_booster_once(session: DeploymentSession, booster: Booster = VERTX_HTTP_BOOSTER) -> None:
    session.setup(booster.repository_url, booster.relative_pom_path)
    session.deploy(booster.goals, booster.profiles)
    assert_greetings(session, booster)


def redeploy_vertx_booster(session: DeploymentSession, booster: Booster = VERTX_HTTP_BOOSTER,
                           marker: RedeploymentMarker = VERTX_MARKER) -> None:
    """A changed, annotated project is redeployed and still greets as expected."""
    deploy_vertx_booster_once(session, booster)

    session.mutate(dependency=EXTRA_DEPENDENCY, marker=marker)
    session.redeploy(booster.goals, booster.profiles)
    assert_greetings(session, booster)
