"""
Custom logging format that adds convergence pass details to json logs
"""

# First Party
from alog import AlogJsonFormatter


class Orch8JsonFormatter(AlogJsonFormatter):
    """Log format that extends AlogJsonFormatter with the identity of the
    parent resource being converged and the reconciliation id of the pass
    """

    _FIELDS_TO_PRINT = AlogJsonFormatter._FIELDS_TO_PRINT + [
        "process",
        "thread",
        "threadName",
        "kind",
        "apiVersion",
        "resourceName",
        "resourceNamespace",
        "reconciliationId",
    ]

    def __init__(self, manifest=None, reconciliation_id=None):
        super().__init__()
        self.manifest = manifest
        self.reconciliation_id = reconciliation_id

    def format(self, record):
        if self.reconciliation_id:
            record.reconciliationId = self.reconciliation_id

        if resource := getattr(record, "resource", self.manifest):
            record.kind = resource.get("kind")
            record.apiVersion = resource.get("apiVersion")

            metadata = resource.get("metadata", {})
            record.resourceName = metadata.get("name")
            record.resourceNamespace = metadata.get("namespace")

        return super().format(record)
