"""Resource descriptor attached to every exported record."""

from typing import Mapping, Optional

from opentelemetry.sdk.resources import SERVICE_NAME, Resource

from dicetel_core.models.config import DicetelTelemetryConfig


def build_resource(
    config: Optional[DicetelTelemetryConfig] = None,
    attributes: Optional[Mapping[str, str]] = None,
) -> Resource:
    """Build the immutable resource identifying this process.

    Parameters
    ----------
    config : DicetelTelemetryConfig, optional
        Telemetry configuration providing the service name.
    attributes : Mapping[str, str], optional
        Extra string attributes. ``service.name`` always comes from the config.

    Returns
    -------
    Resource
        An OpenTelemetry resource. Its attributes cannot be mutated.
    """
    config = config or DicetelTelemetryConfig()
    merged = {str(k): str(v) for k, v in (attributes or {}).items()}
    merged[SERVICE_NAME] = config.service_name
    return Resource(merged)


def resource_attributes(resource: Resource) -> dict[str, str]:
    """Return the resource attributes as plain strings."""
    return {key: str(value) for key, value in resource.attributes.items()}
