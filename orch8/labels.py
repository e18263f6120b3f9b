"""
Helpers for the standard label set attached to every object orch8 creates.
The labels are ownership and discovery metadata only and play no part in
deciding whether an object has converged.
"""

# Standard
from typing import Dict, Optional

# Local
from . import config


def standard_labels(extra_labels: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Get a fresh copy of the standard labels, optionally extended with
    additional labels

    Args:
        extra_labels:  Optional[Dict[str, str]]
            Labels to add on top of the standard set

    Returns:
        labels:  Dict[str, str]
            The label dict to place in metadata.labels
    """
    labels = {str(key): str(val) for key, val in config.standard_labels.items()}
    labels.update(extra_labels or {})
    return labels
