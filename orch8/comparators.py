"""
Structural comparators for the specifications orch8 converges. There is one
comparator per specification type. Each carries a VERSION so that a change in
comparison semantics is visible in the logs of every pass that uses it.

All comparators treat absent values, None, empty strings and empty
collections as equal so that representation differences between the desired
spec and the object returned by the cluster (nil vs {} vs missing key) never
cause an update loop.
"""

# Standard
from decimal import Decimal
from typing import Any, Optional
import abc
import copy

# Third Party
from deepdiff import DeepDiff
from kubernetes.utils import parse_quantity

# First Party
import alog

log = alog.use_channel("CMPAR")

## Helpers #####################################################################


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, dict, list)) and not value)


def normalize(value: Any) -> Any:
    """Recursively drop empty values from a spec so that absent and empty are
    indistinguishable. Mappings that become empty after pruning are dropped as
    well.
    """
    if isinstance(value, dict):
        pruned = {}
        for key, val in value.items():
            val = normalize(val)
            if not _is_empty(val):
                pruned[key] = val
        return pruned
    if isinstance(value, list):
        items = [normalize(item) for item in value]
        return [item for item in items if not _is_empty(item)]
    return value


def normalize_quantity(value: Any) -> Any:
    """Convert a resource quantity to a Decimal so that equivalent spellings
    (e.g. "1000m" and "1", "1Gi" and "1073741824") compare equal. Values that
    do not parse are returned unchanged and will compare unequal to any valid
    desired quantity.
    """
    if isinstance(value, Decimal):
        return value
    try:
        return parse_quantity(value)
    except (ValueError, TypeError):
        log.debug2("Leaving unparseable quantity [%s] as-is", value)
        return value


## Base ########################################################################


class SpecComparator(abc.ABC):
    """Base class for a versioned structural comparator of one spec type"""

    VERSION = 1

    def canonicalize(self, spec: Optional[dict]) -> dict:
        """Produce the canonical form of a spec that is used for comparison.
        Children extend this for spec types with equivalent representations.
        """
        return normalize(copy.deepcopy(dict(spec or {})))

    def diff(self, observed: Optional[dict], desired: Optional[dict]) -> DeepDiff:
        """Compute the structural diff between the canonical forms"""
        return DeepDiff(self.canonicalize(observed), self.canonicalize(desired))

    def equal(self, observed: Optional[dict], desired: Optional[dict]) -> bool:
        """Determine whether the observed spec already matches the desired
        spec
        """
        diff = self.diff(observed, desired)
        if diff:
            log.debug2(
                "%s(v%d) found difference: %s",
                type(self).__name__,
                self.VERSION,
                diff,
            )
            return False
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}(v{self.VERSION})"


## Comparators #################################################################


class SubscriptionSpecComparator(SpecComparator):
    """Comparator for OLM Subscription specs"""

    VERSION = 1


class KnativeEventingSpecComparator(SpecComparator):
    """Comparator for KnativeEventing specs"""

    VERSION = 1


class KnativeServingSpecComparator(SpecComparator):
    """Comparator for KnativeServing specs"""

    VERSION = 1


class SonataFlowClusterPlatformSpecComparator(SpecComparator):
    """Comparator for SonataFlowClusterPlatform specs"""

    VERSION = 1


class SonataFlowPlatformSpecComparator(SpecComparator):
    """Comparator for SonataFlowPlatform specs. The build resource limits and
    requests are compared by quantity value rather than by spelling.
    """

    VERSION = 2

    def canonicalize(self, spec: Optional[dict]) -> dict:
        canonical = super().canonicalize(spec)
        resources = (
            canonical.get("build", {}).get("template", {}).get("resources", {})
        )
        for section in ("limits", "requests"):
            quantities = resources.get(section)
            if isinstance(quantities, dict):
                resources[section] = {
                    name: normalize_quantity(quantity)
                    for name, quantity in quantities.items()
                }
        return canonical
