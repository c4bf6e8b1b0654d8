"""
Data models for the console operator.

Custom resources (clusters, tasks) arrive as plain dicts from the
CustomObjects API; Secrets arrive as V1Secret objects. These models give
the workflows a typed view of both.
"""

import base64
import binascii
import copy
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr

# Cluster label flipped when a console is added or removed
LABEL_ADMIN_ENABLED = "admin-enabled"
# Label tying Secrets, PVCs and pods to their cluster
LABEL_PG_CLUSTER = "pg-cluster"
# Label marking console pods
LABEL_CONSOLE = "crunchy-pgadmin"
# Task label naming the user who requested the task
LABEL_ACTOR = "pgouser"

# Task parameter naming the target cluster
TASK_PARAM_CLUSTER = "console-task-cluster"

TASK_ADD_CONSOLE = "add-console"
TASK_DELETE_CONSOLE = "delete-console"


class StorageSpec(BaseModel):
    """Size and class of the console data volume claim."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    storage_class: str = Field(default="", alias="storageclass")
    access_mode: str = Field(default="ReadWriteOnce", alias="accessmode")
    size: str = "1G"
    storage_type: str = Field(default="dynamic", alias="storagetype")
    supplemental_groups: str = Field(default="", alias="supplementalgroups")
    match_labels: str = Field(default="", alias="matchLabels")


class ClusterRecord(BaseModel):
    """A managed PostgreSQL cluster custom resource."""

    name: str
    namespace: str
    labels: Dict[str, str] = Field(default_factory=dict)
    ccp_image_tag: str = ""
    uid: Optional[str] = None
    resource: Dict[str, Any] = Field(default_factory=dict, description="Raw custom resource body")

    @classmethod
    def from_resource(cls, obj: Dict[str, Any]) -> "ClusterRecord":
        metadata = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        return cls(
            name=metadata["name"],
            namespace=metadata.get("namespace", ""),
            labels=dict(metadata.get("labels") or {}),
            ccp_image_tag=spec.get("ccpimagetag", ""),
            uid=metadata.get("uid"),
            resource=obj,
        )

    def to_resource(self) -> Dict[str, Any]:
        """Raw body with the current labels, keeping resourceVersion for conditional writes."""
        body = copy.deepcopy(self.resource)
        metadata = body.setdefault("metadata", {})
        metadata.setdefault("name", self.name)
        metadata.setdefault("namespace", self.namespace)
        metadata["labels"] = dict(self.labels)
        return body

    @property
    def admin_enabled(self) -> bool:
        return self.labels.get(LABEL_ADMIN_ENABLED) == "true"


class ProvisioningTask(BaseModel):
    """A task custom resource asking for a console to be added or removed."""

    name: str
    namespace: str
    task_type: str
    cluster_name: str
    actor: str = ""
    uid: Optional[str] = None
    storage_spec: StorageSpec = Field(default_factory=StorageSpec)

    @classmethod
    def from_resource(cls, obj: Dict[str, Any]) -> "ProvisioningTask":
        metadata = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        parameters = spec.get("parameters") or {}
        return cls(
            name=metadata["name"],
            namespace=spec.get("namespace") or metadata.get("namespace", ""),
            task_type=spec.get("tasktype", ""),
            cluster_name=parameters.get(TASK_PARAM_CLUSTER, ""),
            actor=(metadata.get("labels") or {}).get(LABEL_ACTOR, ""),
            uid=metadata.get("uid"),
            storage_spec=StorageSpec.model_validate(spec.get("storagespec") or {}),
        )


class ProvisioningFields(BaseModel):
    """
    Values substituted into the console Deployment and Service.

    Consumed once by the templater and never persisted. Fields left as None
    are treated as missing by the templater.
    """

    name: Optional[str] = None
    cluster_name: Optional[str] = None
    image_prefix: Optional[str] = None
    image_tag: Optional[str] = None
    disable_security_context: bool = False
    port: Optional[int] = None
    service_port: Optional[int] = None
    init_user: Optional[str] = None
    init_pass: Optional[SecretStr] = None
    volume_claim_name: Optional[str] = None

    def template_values(self) -> Dict[str, Any]:
        """Template field set keyed by template variable name, missing fields omitted."""
        values = {
            "name": self.name,
            "clusterName": self.cluster_name,
            "imagePrefix": self.image_prefix,
            "imageTag": self.image_tag,
            "disableSecurityContext": self.disable_security_context,
            "port": self.port,
            "servicePort": self.service_port,
            "initUser": self.init_user,
            "initPass": self.init_pass.get_secret_value() if self.init_pass else None,
            "volumeClaimName": self.volume_claim_name,
        }
        return {key: value for key, value in values.items() if value is not None}


class CredentialSecret(BaseModel):
    """A username/password pair stored in a cluster-owned Secret."""

    name: str
    username: Optional[str] = None
    password: Optional[SecretStr] = None

    @classmethod
    def from_v1_secret(cls, secret) -> "CredentialSecret":
        data = secret.data or {}
        password = _decode_secret_value(data.get("password"))
        return cls(
            name=secret.metadata.name,
            username=_decode_secret_value(data.get("username")),
            password=SecretStr(password) if password is not None else None,
        )


class ServerEntry(BaseModel):
    """Connection details saved in the console for one-click access to the cluster."""

    name: str
    group: str
    host: str
    port: int = 5432
    maintenance_db: str = "postgres"
    ssl_mode: str = "prefer"
    comment: str = ""


def _decode_secret_value(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        return base64.b64decode(value).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
