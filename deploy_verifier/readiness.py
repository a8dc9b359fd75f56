"""
Bounded polling for application pod readiness.
"""
import logging
import time
from typing import Callable, Optional

from deploy_verifier.config import settings
from deploy_verifier.errors import PodReadinessTimeout
from deploy_verifier.kube_types import PodObservation, RedeploymentMarker

logger = logging.getLogger(__name__)


class ReadinessPoller:
    """Watches the pods of an application until one of them is ready.

    Every call to :meth:`wait_for_ready` polls at most ``attempts`` times,
    sleeping ``interval`` seconds after each unsuccessful poll, and then raises
    :class:`PodReadinessTimeout`.
    """

    def __init__(self, kube_client, attempts: Optional[int] = None, interval: Optional[float] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.kube_client = kube_client
        self.attempts = attempts if attempts is not None else settings.POD_WAIT_ATTEMPTS
        self.interval = interval if interval is not None else settings.POD_WAIT_INTERVAL_SECS
        self.sleep = sleep

    @staticmethod
    def is_satisfied(pod: PodObservation, marker: Optional[RedeploymentMarker] = None) -> bool:
        if not pod.ready:
            return False
        return marker is None or pod.carries(marker)

    def wait_for_ready(self, app: str, marker: Optional[RedeploymentMarker] = None) -> PodObservation:
        """
        Wait for a ready pod of the application.

        Args:
            app: Application name, matched against the pods' app label
            marker: When given, only pods annotated with it count

        Returns:
            The first pod observed satisfying the readiness predicate

        Raises:
            PodReadinessTimeout: when no pod qualified within the poll bound
        """
        if not app:
            raise ValueError("Application name is required to wait for its pods")

        logger.info(f"Waiting for application pod of {app}" + (f" annotated with {marker}" if marker else "") + " ....")

        polls = 0
        while polls < self.attempts:
            for pod in self.kube_client.list_application_pods(app):
                logger.info(f"wait_for_ready({app}) -> Pod : {pod.name}, STATUS : {pod.phase}, isPodReady : {pod.ready}")
                if marker is not None and pod.has_annotation(marker.key):
                    logger.info(f"{pod.name} is redeployed pod.")
                if self.is_satisfied(pod, marker):
                    logger.info("OK ✓ ... Pod wait over.")
                    return pod
            polls += 1
            self.sleep(self.interval)

        logger.error(f"❌ No ready pod for {app} after {polls} polls")
        raise PodReadinessTimeout(app, marker, self.attempts, self.interval)
