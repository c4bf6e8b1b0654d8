"""
Resource templating for the console Deployment and Service.

Rendering is pluggable: the default strategy builds typed Kubernetes client
objects directly, while TemplateFileStrategy keeps operators able to supply
their own YAML templates with ${field} placeholders.
"""

import logging
import string
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from kubernetes import client

from ..config import get_settings
from ..errors import TemplateError
from ..schemas import ProvisioningFields
from .orchestration.kubernetes.helpers import (
    create_console_deployment,
    create_console_service,
)

logger = logging.getLogger(__name__)

DEPLOYMENT = "deployment"
SERVICE = "service"

# Template variables each kind cannot render without
REQUIRED_FIELDS = {
    DEPLOYMENT: (
        "name", "clusterName", "imagePrefix", "imageTag",
        "port", "initUser", "initPass", "volumeClaimName",
    ),
    SERVICE: ("name", "clusterName", "port"),
}

EXPECTED_KIND = {
    DEPLOYMENT: "Deployment",
    SERVICE: "Service",
}

MASK = "********"


class RenderStrategy(ABC):
    """Turns a validated field set into a resource document."""

    @abstractmethod
    def render(self, kind: str, values: Dict[str, Any]) -> Any:
        pass


class BuilderStrategy(RenderStrategy):
    """
    Builds V1Deployment / V1Service objects directly.

    Args:
        image_name: Console image name appended to the image prefix
        image_override: Full image reference that wins over prefix/name/tag
    """

    def __init__(self, image_name: str, image_override: str = ""):
        self.image_name = image_name
        self.image_override = image_override

    def image_for(self, values: Dict[str, Any]) -> str:
        if self.image_override:
            return self.image_override
        return f"{values['imagePrefix']}/{self.image_name}:{values['imageTag']}"

    def render(self, kind: str, values: Dict[str, Any]) -> Any:
        if kind == DEPLOYMENT:
            return create_console_deployment(
                name=values["name"],
                cluster_name=values["clusterName"],
                image=self.image_for(values),
                port=int(values["port"]),
                init_user=values["initUser"],
                init_pass=values["initPass"],
                volume_claim_name=values["volumeClaimName"],
                disable_security_context=bool(values.get("disableSecurityContext", False)),
            )
        return create_console_service(
            name=values["name"],
            cluster_name=values["clusterName"],
            port=int(values["port"]),
            service_port=values.get("servicePort"),
        )


class TemplateFileStrategy(RenderStrategy):
    """
    Renders <template_dir>/<kind>.yaml by ${field} substitution.

    Returns the parsed manifest as a dict, which the Kubernetes client
    accepts as a request body just like a typed object.
    """

    def __init__(self, template_dir: str):
        self.template_dir = Path(template_dir)

    def render(self, kind: str, values: Dict[str, Any]) -> Any:
        path = self.template_dir / f"{kind}.yaml"
        try:
            template = string.Template(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise TemplateError(f"cannot read {kind} template {path}: {e}") from e

        substitutions = {
            key: str(value).lower() if isinstance(value, bool) else str(value)
            for key, value in values.items()
        }
        try:
            text = template.substitute(substitutions)
        except KeyError as e:
            raise TemplateError(f"{kind} template references missing field {e}") from e
        except ValueError as e:
            raise TemplateError(f"invalid placeholder in {kind} template: {e}") from e

        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise TemplateError(f"{kind} template did not render valid YAML: {e}") from e

        if not isinstance(document, dict) or document.get("kind") != EXPECTED_KIND[kind]:
            raise TemplateError(f"{kind} template must render a single {EXPECTED_KIND[kind]} object")
        if not (document.get("metadata") or {}).get("name"):
            raise TemplateError(f"{kind} template has no metadata.name")
        return document


class ResourceTemplater:
    """Renders console resources from a ProvisioningFields value."""

    def __init__(self, strategy: Optional[RenderStrategy] = None, debug: Optional[bool] = None):
        settings = get_settings()
        if strategy is None:
            if settings.template_dir:
                strategy = TemplateFileStrategy(settings.template_dir)
            else:
                strategy = BuilderStrategy(
                    image_name=settings.console_image_name,
                    image_override=settings.console_image_override,
                )
        self.strategy = strategy
        self.debug = settings.debug if debug is None else debug

    def render(self, kind: str, fields: ProvisioningFields) -> Any:
        """
        Render a resource document ready for submission.

        Args:
            kind: "deployment" or "service"
            fields: Provisioning field set; fields the kind does not use are ignored

        Raises:
            TemplateError: unknown kind, missing required field, or a
                rendering/decoding failure
        """
        if kind not in REQUIRED_FIELDS:
            raise TemplateError(f"Unknown resource kind: {kind}")

        values = fields.template_values()
        missing = [key for key in REQUIRED_FIELDS[kind] if values.get(key) in (None, "")]
        if missing:
            raise TemplateError(f"Cannot render {kind}: missing field(s) {', '.join(missing)}")

        try:
            document = self.strategy.render(kind, values)
        except TemplateError:
            raise
        except (TypeError, ValueError) as e:
            raise TemplateError(f"Failed to render {kind}: {e}") from e

        if self.debug:
            logger.debug(f"[TEMPLATE] Rendered {kind}:\n{self._dump(document, values)}")

        return document

    @staticmethod
    def _dump(document: Any, values: Dict[str, Any]) -> str:
        """Serialise a document for the debug log with the setup password masked."""
        if not isinstance(document, dict):
            document = client.ApiClient().sanitize_for_serialization(document)
        text = yaml.safe_dump(document, default_flow_style=False)
        secret = values.get("initPass")
        if secret:
            text = text.replace(str(secret), MASK)
        return text
