"""
Type definitions for observed cluster objects.
"""
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass(frozen=True)
class PodObservation:
    """Point-in-time snapshot of a pod."""
    name: str
    ready: bool
    phase: str
    annotations: Dict[str, str] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)

    def has_annotation(self, key: str) -> bool:
        return key in self.annotations

    def carries(self, marker: "RedeploymentMarker") -> bool:
        """True when the pod is annotated with the marker (value ignoring case)."""
        value = self.annotations.get(marker.key)
        return value is not None and value.casefold() == marker.value.casefold()


@dataclass(frozen=True)
class RedeploymentMarker:
    """Annotation injected before a redeploy to tell new pods from old ones."""
    key: str
    value: str

    def __str__(self) -> str:
        return f"{self.key}={self.value}"


@dataclass(frozen=True)
class ExpectedResourceSet:
    """Workload, service and route names expected for an application."""
    workload: str
    service: str
    route: str

    @classmethod
    def for_application(cls, app: str) -> "ExpectedResourceSet":
        return cls(workload=app, service=app, route=app)


@dataclass
class Route:
    """Externally reachable route to a service."""
    name: str
    host: str
    path: Optional[str] = None
    tls: bool = False

    def url(self, endpoint: str = "") -> str:
        scheme = "https" if self.tls else "http"
        return f"{scheme}://{self.host}{endpoint}"
