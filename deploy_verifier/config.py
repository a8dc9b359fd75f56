"""
Configuration settings for deployment verification runs.
"""
import logging
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional


class Settings(BaseSettings):
    """Verification settings from environment variables."""

    # Kubernetes Configuration
    K8S_NAMESPACE: Optional[str] = Field(default=None, description="Namespace; defaults to the current kube context")
    K8S_CONTEXT: Optional[str] = Field(default=None, description="Kubernetes context")
    K8S_IN_CLUSTER: bool = Field(default=False, description="Running in cluster")
    WORKLOAD_KIND: str = Field(default="DeploymentConfig", description="Workload kind: DeploymentConfig|Deployment")
    APP_LABEL_KEY: str = Field(default="app", description="Pod label carrying the application name")

    # Plugin under test
    PLUGIN_GROUP_ID: str = Field(default="io.fabric8", description="Plugin groupId")
    PLUGIN_ARTIFACT_ID: str = Field(default="fabric8-maven-plugin", description="Plugin artifactId")
    PLUGIN_VERSION: Optional[str] = Field(default=None, description="Plugin version; read from PLUGIN_POM_PATH when unset")
    PLUGIN_POM_PATH: str = Field(default="pom.xml", description="Descriptor holding the plugin version under test")
    OPENSHIFT_PROFILE: str = Field(default="openshift", description="Profile carrying the plugin configuration")

    # External tools
    MAVEN_EXECUTABLE: str = Field(default="mvn", description="Maven executable")
    GIT_EXECUTABLE: str = Field(default="git", description="Git executable")
    BUILD_TIMEOUT_SECS: int = Field(default=1800, description="Build timeout")

    # Polling
    POD_WAIT_ATTEMPTS: int = Field(default=60, ge=1, description="Pod readiness polls before timing out")
    POD_WAIT_INTERVAL_SECS: float = Field(default=5, ge=0, description="Sleep between pod readiness polls")
    SETTLE_DELAY_SECS: float = Field(default=20, ge=0, description="Wait for services and routes after readiness")

    # Service Configuration
    REQUEST_TIMEOUT_SECS: int = Field(default=30, description="Request timeout")
    LOG_LEVEL: str = Field(default="info", description="Log level: info|debug|warning")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging from LOG_LEVEL."""
    level_name = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
