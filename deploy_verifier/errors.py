"""Failure types raised while verifying a deployment."""

from typing import Any, Optional


class VerificationError(Exception):
    """Base exception for verification failures."""

    def __init__(self, message: str, app: Optional[str] = None):
        super().__init__(message)
        self.app = app


class SetupError(VerificationError):
    """Raised when the sample project cannot be cloned or its descriptor parsed."""
    pass


class BuildFailure(VerificationError):
    """Raised when the build/deploy command exits non-zero."""

    def __init__(self, exit_code: int, goals: str, profiles: str, app: Optional[str] = None):
        super().__init__(
            f"Build '{goals}' (profiles: {profiles or '-'}) failed with exit code {exit_code}",
            app,
        )
        self.exit_code = exit_code
        self.goals = goals
        self.profiles = profiles


class PodReadinessTimeout(VerificationError, TimeoutError):
    """Raised when no pod of the application became ready within the poll bound."""

    def __init__(self, app: str, marker: Optional[Any], attempts: int, interval: float):
        message = f"Pod wait timeout! Could not find ready application pod for {app}"
        if marker is not None:
            message += f" annotated with {marker}"
        message += f" after {attempts} polls every {interval}s"
        super().__init__(message, app)
        self.marker = marker
        self.attempts = attempts
        self.interval = interval


class AssertionFailure(VerificationError, AssertionError):
    """Base class for post-deploy assertion failures."""
    pass


class ResourceMissing(AssertionFailure):
    """Raised when an expected cluster resource does not exist."""

    kind = "Resource"

    def __init__(self, name: str, namespace: str, app: Optional[str] = None):
        super().__init__(f"{self.kind} '{name}' not found in namespace '{namespace}'", app)
        self.name = name
        self.namespace = namespace


class WorkloadMissing(ResourceMissing):
    kind = "Workload"


class ServiceMissing(ResourceMissing):
    kind = "Service"


class RouteMissing(ResourceMissing):
    kind = "Route"


class ContentMismatch(AssertionFailure):
    """Raised when the application answers with unexpected content."""

    def __init__(self, url: str, key: str, expected: Any, actual: Any, app: Optional[str] = None):
        super().__init__(
            f"GET {url}: expected {key}={expected!r}, got {actual!r}",
            app,
        )
        self.url = url
        self.key = key
        self.expected = expected
        self.actual = actual


class StaleInstanceError(AssertionFailure):
    """Raised when a redeploy was observed through the pod of the previous deployment."""

    def __init__(self, pod_name: str, app: Optional[str] = None):
        super().__init__(f"Redeployed pod {pod_name} is the instance observed before redeploy", app)
        self.pod_name = pod_name
