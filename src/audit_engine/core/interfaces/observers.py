"""Observer protocol for registry mutations.

Observers decouple reactions to registry changes (starting or stopping the
poll timer, refreshing a view) from the registry itself.
"""

from typing import TYPE_CHECKING, Protocol

from audit_engine.core.models.job import AuditJob

if TYPE_CHECKING:
    from audit_engine.core.managers.job_registry import JobRegistry


class RegistryObserver(Protocol):
    def on_registry_changed(self, registry: "JobRegistry", job: AuditJob) -> None:
        """Called synchronously after every upsert.

        Args:
            registry: The registry that was mutated
            job: The merged record as stored
        """
        ...
