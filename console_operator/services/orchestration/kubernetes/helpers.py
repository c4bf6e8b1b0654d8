"""
Kubernetes manifest builders for the console.

Builds typed client objects directly from the provisioning field set:
- Console data PVC
- Console Deployment (single pgAdmin pod)
- Console Service
"""

from kubernetes import client
from typing import Dict, Optional

from ....schemas import LABEL_CONSOLE, LABEL_PG_CLUSTER, StorageSpec

CONSOLE_CONTAINER_NAME = "pgadmin"
CONSOLE_DATA_VOLUME = "pgadmin-datadir"
CONSOLE_DATA_MOUNT_PATH = "/var/lib/pgadmin"
CONSOLE_FS_GROUP = 2


# =============================================================================
# Labels
# =============================================================================

def get_console_labels(name: str, cluster_name: str) -> Dict[str, str]:
    """
    Get standard labels for console resources.

    Args:
        name: Shared console resource name
        cluster_name: Owning cluster name

    Returns:
        Dict of labels
    """
    return {
        "name": name,
        LABEL_PG_CLUSTER: cluster_name,
        LABEL_CONSOLE: "true",
        "vendor": "crunchydata",
    }


def _parse_match_labels(match_labels: str) -> Dict[str, str]:
    # "key=value" or "key=value,key2=value2"
    labels = {}
    for pair in match_labels.split(","):
        key, sep, value = pair.partition("=")
        if sep and key.strip():
            labels[key.strip()] = value.strip()
    return labels


# =============================================================================
# PVC Manifest
# =============================================================================

def create_pvc_manifest(
    name: str,
    cluster_name: str,
    namespace: str,
    storage_spec: StorageSpec
) -> client.V1PersistentVolumeClaim:
    """
    Create PVC manifest for console storage.

    Dynamic storage asks the storage class for a volume; otherwise the claim
    binds to a pre-created volume chosen by the storage match labels.
    """
    spec = client.V1PersistentVolumeClaimSpec(
        access_modes=[storage_spec.access_mode],
        resources=client.V1VolumeResourceRequirements(
            requests={"storage": storage_spec.size}
        )
    )

    if storage_spec.storage_type == "dynamic":
        if storage_spec.storage_class:
            spec.storage_class_name = storage_spec.storage_class
    elif storage_spec.match_labels:
        spec.selector = client.V1LabelSelector(
            match_labels=_parse_match_labels(storage_spec.match_labels)
        )

    return client.V1PersistentVolumeClaim(
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            labels={
                LABEL_PG_CLUSTER: cluster_name,
                "vendor": "crunchydata",
            }
        ),
        spec=spec
    )


# =============================================================================
# Console Deployment
# =============================================================================

def create_console_deployment(
    name: str,
    cluster_name: str,
    image: str,
    port: int,
    init_user: str,
    init_pass: str,
    volume_claim_name: str,
    disable_security_context: bool = False
) -> client.V1Deployment:
    """
    Create the console deployment manifest.

    The setup credentials are handed to pgAdmin through its environment so it
    can initialise its data store on first boot. The setup account is locked
    down by the credential bootstrap once the pod is ready.
    """
    labels = get_console_labels(name, cluster_name)

    container = client.V1Container(
        name=CONSOLE_CONTAINER_NAME,
        image=image,
        ports=[
            client.V1ContainerPort(container_port=port, protocol="TCP")
        ],
        env=[
            client.V1EnvVar(name="PGADMIN_SETUP_EMAIL", value=init_user),
            client.V1EnvVar(name="PGADMIN_SETUP_PASSWORD", value=init_pass),
            client.V1EnvVar(name="SERVER_PORT", value=str(port)),
        ],
        volume_mounts=[
            client.V1VolumeMount(
                name=CONSOLE_DATA_VOLUME,
                mount_path=CONSOLE_DATA_MOUNT_PATH
            )
        ],
        readiness_probe=client.V1Probe(
            tcp_socket=client.V1TCPSocketAction(port=port),
            initial_delay_seconds=10,
            period_seconds=10
        )
    )

    pod_spec = client.V1PodSpec(
        containers=[container],
        volumes=[
            client.V1Volume(
                name=CONSOLE_DATA_VOLUME,
                persistent_volume_claim=client.V1PersistentVolumeClaimVolumeSource(
                    claim_name=volume_claim_name
                )
            )
        ]
    )

    if not disable_security_context:
        pod_spec.security_context = client.V1PodSecurityContext(
            fs_group=CONSOLE_FS_GROUP
        )

    return client.V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=client.V1ObjectMeta(
            name=name,
            labels=labels
        ),
        spec=client.V1DeploymentSpec(
            replicas=1,
            selector=client.V1LabelSelector(
                match_labels={"name": name}
            ),
            template=client.V1PodTemplateSpec(
                metadata=client.V1ObjectMeta(labels=labels),
                spec=pod_spec
            )
        )
    )


# =============================================================================
# Console Service
# =============================================================================

def create_console_service(
    name: str,
    cluster_name: str,
    port: int,
    service_port: Optional[int] = None
) -> client.V1Service:
    """Create the ClusterIP service in front of the console pod."""
    return client.V1Service(
        api_version="v1",
        kind="Service",
        metadata=client.V1ObjectMeta(
            name=name,
            labels={
                "name": name,
                LABEL_PG_CLUSTER: cluster_name,
            }
        ),
        spec=client.V1ServiceSpec(
            selector={"name": name},
            ports=[
                client.V1ServicePort(
                    name="pgadmin",
                    port=service_port or port,
                    target_port=port,
                    protocol="TCP"
                )
            ],
            type="ClusterIP"
        )
    )
