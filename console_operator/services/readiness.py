"""
Bounded wait for a Deployment to report all replicas ready.
"""

import asyncio
import logging
from typing import Optional

from ..errors import ReadinessCancelledError, ReadinessTimeoutError
from .orchestration.kubernetes.client import KubernetesClient

logger = logging.getLogger(__name__)

# Tolerance when a tick lands exactly on the deadline
_CLOCK_SLACK = 1e-6


def is_deployment_ready(deployment) -> bool:
    """Ready when the observed ready replicas equal the desired replicas."""
    desired = deployment.spec.replicas if deployment.spec and deployment.spec.replicas is not None else 1
    ready = (deployment.status.ready_replicas if deployment.status else None) or 0
    return ready == desired


class DeploymentReadinessWaiter:
    """
    Polls a Deployment on a fixed tick until it is ready or a deadline passes.

    A failed fetch (including 404) is logged and the next tick polls again;
    only the deadline or the cancel event ends the wait early.
    """

    def __init__(self, k8s_client: KubernetesClient):
        self.k8s_client = k8s_client

    async def wait(
        self,
        namespace: str,
        name: str,
        timeout: float,
        poll_interval: float,
        cancel: Optional[asyncio.Event] = None
    ) -> None:
        """
        Wait for the deployment to become ready.

        Polls at poll_interval, 2*poll_interval, ... up to and including the
        deadline.

        Raises:
            ReadinessTimeoutError: the deadline passed first
            ReadinessCancelledError: cancel was set first
            ValueError: timeout or poll_interval is not positive
        """
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        loop = asyncio.get_running_loop()
        start = loop.time()
        deadline = start + timeout
        ticks = 1

        while True:
            next_tick = start + ticks * poll_interval
            if next_tick > deadline + _CLOCK_SLACK:
                await self._sleep_until(deadline, cancel)
                logger.warning(f"[K8S] Deployment {name} not ready after {timeout}s")
                raise ReadinessTimeoutError(name, timeout)

            await self._sleep_until(next_tick, cancel)
            ticks += 1

            try:
                deployment = await self.k8s_client.read_deployment(name, namespace)
            except Exception as e:
                logger.error(f"[K8S] Error checking deployment {name} status: {e}")
                continue

            if is_deployment_ready(deployment):
                logger.info(f"[K8S] Deployment {name} is ready")
                return

    async def _sleep_until(self, when: float, cancel: Optional[asyncio.Event]) -> None:
        delay = max(0.0, when - asyncio.get_running_loop().time())
        if cancel is None:
            await asyncio.sleep(delay)
            return
        if cancel.is_set():
            raise ReadinessCancelledError("readiness wait cancelled")
        try:
            await asyncio.wait_for(cancel.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise ReadinessCancelledError("readiness wait cancelled")
