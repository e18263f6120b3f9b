"""
Pure builder functions for the desired state of every object orch8 manages.
Builders take the parent configuration (the spec of the parent Orchestrator
resource) and return a fresh spec dict. They are re-run on every pass and
never cache.
"""

# Standard
from typing import Optional

# Third Party
from kubernetes.utils import parse_quantity

# First Party
import aconfig
import alog

# Local
from . import config
from .exceptions import ConfigError, assert_config
from .utils import nested_get

log = alog.use_channel("BUILD")

# Names of the compute resources configurable for the platform builds
_QUANTITY_NAMES = ("cpu", "memory")


def get_config_section(parent_config: dict, key: str) -> dict:
    """Get a nested mapping of the parent configuration using 'foo.bar' key
    notation. A missing section is empty. A section that is not a mapping, or
    that sits under a value that is not a mapping, is a ConfigError.
    """
    try:
        section = nested_get(parent_config, key)
    except TypeError as err:
        raise ConfigError(f"Invalid parent configuration: {err}") from err
    if section in (None, ""):
        return {}
    assert_config(
        isinstance(section, dict),
        f"{key} must be a mapping, not {type(section).__name__}",
    )
    return section


## Subscriptions ###############################################################


def build_subscription_spec(
    descriptor: "SubscriptionDescriptor",  # noqa: F821
    parent_config: aconfig.Config,
    config_key: Optional[str] = None,
) -> dict:
    """Build the desired spec of an OLM Subscription

    The channel and starting CSV default to the descriptor and may be
    overridden per component with spec.<config_key>.subscription.{channel,
    startingCSV} in the parent configuration.

    Args:
        descriptor:  SubscriptionDescriptor
            The static subscription descriptor of the component
        parent_config:  aconfig.Config
            The parent configuration for this pass
        config_key:  Optional[str]
            The key of the component's section in the parent configuration

    Returns:
        spec:  dict
            The Subscription spec
    """
    overrides = {}
    if config_key:
        overrides = get_config_section(parent_config, f"{config_key}.subscription")
    channel = overrides.get("channel") or descriptor.channel
    starting_csv = overrides.get("startingCSV") or descriptor.starting_csv
    assert_config(
        isinstance(channel, str) and channel,
        f"Invalid subscription channel for {descriptor.name}: {channel}",
    )

    spec = {
        "channel": channel,
        "installPlanApproval": config.install_plan_approval,
        "name": descriptor.name,
        "source": config.catalog_source,
        "sourceNamespace": config.catalog_source_namespace,
    }
    if starting_csv:
        spec["startingCSV"] = starting_csv
    return spec


## Knative #####################################################################


def build_knative_eventing_spec(_parent_config: aconfig.Config) -> dict:
    """The eventing installation runs with the operator defaults"""
    return {}


def build_knative_serving_spec(_parent_config: aconfig.Config) -> dict:
    """The serving installation runs with the operator defaults"""
    return {}


## SonataFlow ##################################################################


def build_sonataflow_cluster_platform_spec(
    _parent_config: aconfig.Config,
    platform_name: str,
    platform_namespace: str,
) -> dict:
    """The cluster platform points every namespace at the single platform"""
    return {
        "platformRef": {
            "name": platform_name,
            "namespace": platform_namespace,
        }
    }


def build_sonataflow_platform_spec(parent_config: aconfig.Config) -> dict:
    """Build the SonataFlowPlatform spec: build resources from
    orchestratorConfig.sonataFlowPlatform.resources and the data index and
    job service, both persisted to postgres when postgresDB is configured.
    """
    resources_config = get_config_section(
        parent_config, "orchestratorConfig.sonataFlowPlatform.resources"
    )
    persistence = _build_persistence(parent_config)
    return {
        "build": {
            "template": {
                "resources": {
                    "limits": _build_quantities(resources_config, "limits"),
                    "requests": _build_quantities(resources_config, "requests"),
                }
            }
        },
        "services": {
            "dataIndex": {"enabled": True, "persistence": persistence},
            "jobService": {"enabled": True, "persistence": persistence},
        },
    }


def _build_quantities(resources_config: dict, section: str) -> dict:
    """Validate and collect the cpu/memory quantities of one section. Missing
    or empty quantities are left out, malformed ones are a ConfigError.
    """
    section_config = get_config_section(resources_config, section)
    quantities = {}
    for name in _QUANTITY_NAMES:
        quantity = section_config.get(name)
        if quantity in (None, ""):
            continue
        try:
            parse_quantity(quantity)
        except (ValueError, TypeError) as err:
            raise ConfigError(
                f"Invalid {section}.{name} quantity for the platform: {quantity}"
            ) from err
        quantities[name] = str(quantity)
    log.debug3("Built %s quantities: %s", section, quantities)
    return quantities


def _build_persistence(parent_config: aconfig.Config) -> Optional[dict]:
    """Build the postgres persistence block shared by the platform services"""
    postgres = get_config_section(parent_config, "postgresDB")
    if not postgres:
        log.debug2("No postgresDB configured. Services will be ephemeral")
        return None

    auth_secret = get_config_section(postgres, "authSecret")
    secret_name = auth_secret.get("secretName")
    service_name = postgres.get("serviceName")
    database_name = postgres.get("databaseName")
    assert_config(secret_name, "postgresDB.authSecret.secretName is required")
    assert_config(service_name, "postgresDB.serviceName is required")
    assert_config(database_name, "postgresDB.databaseName is required")

    return {
        "postgresql": {
            "secretRef": {
                "name": secret_name,
                "userKey": auth_secret.get("userKey"),
                "passwordKey": auth_secret.get("passwordKey"),
            },
            "serviceRef": {
                "name": service_name,
                "namespace": postgres.get("serviceNameSpace"),
                "databaseName": database_name,
            },
        }
    }
