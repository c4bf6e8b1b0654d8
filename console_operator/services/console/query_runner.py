"""
Query handle for a console's internal data store.

pgAdmin keeps its users and saved servers in a SQLite file inside the pod.
Statements are run with the sqlite3 CLI through the Kubernetes exec stream.
"""

import logging
from typing import Optional

from kubernetes.client.rest import ApiException

from ...config import get_settings
from ...errors import ConsoleQueryError, ConsoleUnavailableError
from ...schemas import ClusterRecord
from ...utils.resource_naming import get_console_pod_selector
from ..orchestration.kubernetes.client import KubernetesClient
from ..orchestration.kubernetes.helpers import CONSOLE_CONTAINER_NAME

logger = logging.getLogger(__name__)

# sqlite3 prints failures as "Error: ..." or "Parse error ..." on stderr
_ERROR_MARKERS = ("Error:", "Parse error", "Runtime error")


def quote_literal(value: str) -> str:
    """Quote a value as a SQLite string literal."""
    return "'" + str(value).replace("'", "''") + "'"


class ConsoleQueryRunner:
    """Runs SQL statements against one console pod's data store."""

    def __init__(
        self,
        k8s_client: KubernetesClient,
        pod_name: str,
        namespace: str,
        data_path: str,
        container_name: str = CONSOLE_CONTAINER_NAME
    ):
        self.k8s_client = k8s_client
        self.pod_name = pod_name
        self.namespace = namespace
        self.data_path = data_path
        self.container_name = container_name

    async def query(self, statement: str) -> str:
        """Run a statement and return its output."""
        try:
            output = await self.k8s_client.exec_in_pod(
                self.pod_name,
                self.namespace,
                ["sqlite3", "-bail", self.data_path, statement],
                container_name=self.container_name
            )
        except RuntimeError as e:
            raise ConsoleQueryError(str(e)) from e

        output = output or ""
        if any(marker in output for marker in _ERROR_MARKERS):
            raise ConsoleQueryError(f"console query failed in pod {self.pod_name}: {output.strip()}")
        return output

    async def execute(self, statement: str) -> None:
        """Run a statement for its side effects."""
        await self.query(statement)


async def get_query_runner(
    k8s_client: KubernetesClient,
    cluster: ClusterRecord
) -> Optional[ConsoleQueryRunner]:
    """
    Get a query handle for the cluster's console.

    Returns None when the cluster does not claim to have a console.

    Raises:
        ConsoleUnavailableError: the cluster claims a console but no running
            console pod was found, or the pods could not be listed
    """
    if not cluster.admin_enabled:
        return None

    try:
        pods = await k8s_client.list_pods(cluster.namespace, get_console_pod_selector(cluster.name))
    except ApiException as e:
        raise ConsoleUnavailableError(
            f"failed to look up console pods for cluster {cluster.name}: {e.reason}"
        ) from e
    running = [pod for pod in pods if pod.status and pod.status.phase == "Running"]
    if not running:
        raise ConsoleUnavailableError(f"no running console pod found for cluster {cluster.name}")

    pod_name = running[0].metadata.name
    logger.debug(f"[CONSOLE] Using console pod {pod_name} for cluster {cluster.name}")
    return ConsoleQueryRunner(
        k8s_client,
        pod_name,
        cluster.namespace,
        get_settings().console_data_path
    )
