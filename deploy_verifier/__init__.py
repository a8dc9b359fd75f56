"""Verification of plugin-driven deployments on OpenShift/Kubernetes."""

__version__ = "0.1.0"
