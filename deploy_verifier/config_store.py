"""
Create-or-replace storage for the ConfigMaps consumed by a deployed application.
"""
import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class ConfigDataStore:
    """ConfigMaps of one namespace, written whole."""

    def __init__(self, kube_client):
        self.kube_client = kube_client

    def create_or_replace(self, name: str, data: Dict[str, str]) -> None:
        """Create the ConfigMap, or replace its data with exactly `data`."""
        if self.kube_client.get_config_map(name) is None:
            self.kube_client.create_config_map(name, data)
        else:
            self.kube_client.replace_config_map(name, data)
        logger.info(f"ConfigMap {name} now holds keys {sorted(data)}")

    def get(self, name: str) -> Optional[Dict[str, str]]:
        return self.kube_client.get_config_map(name)

    def delete(self, name: str) -> bool:
        return self.kube_client.delete_config_map(name)
