"""Example provisioners and enumerators used by the test suite.

The provisioners never reach an external service: they record every
call, resolve the parameters of the resources they receive, and return
configured outputs, or fail for configured resource names.
"""

from threading import Barrier, Lock
from typing import TYPE_CHECKING, Any

from infragraph.extensions import ProvisionResult, ResourceEnumerator
from infragraph.settings import DEFAULT_IDENTITY_TAG

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

if TYPE_CHECKING:
    from infragraph.provisioning import ProvisioningContext
    from infragraph.resources import Resource


class RecordingProvisioner:
    """Provisioner recording calls and returning configured outputs."""

    def __init__(self, outputs: 'Mapping[str, dict[str, str]] | None' = None,
                 secret_outputs: 'Mapping[str, dict[str, str]] | None' = None,
                 failures: 'Iterable[str]' = ()) -> None:
        self.outputs = dict(outputs or {})
        self.secret_outputs = dict(secret_outputs or {})
        self.failures = set(failures)

        self.created: list[str] = []
        self.adopted: list[tuple[str, Any]] = []
        self.parameters: dict[str, dict[str, Any]] = {}

        self._lock = Lock()

    def create(self, resource: 'Resource', context: 'ProvisioningContext') -> ProvisionResult:
        with self._lock:
            self.created.append(resource.name)

        if resource.name in self.failures:
            raise RuntimeError(f'deployment of {resource.name} failed')

        return self._result(resource, context)

    def adopt(self, resource: 'Resource', existing: Any,  # noqa: ANN401
              context: 'ProvisioningContext') -> ProvisionResult:
        with self._lock:
            self.adopted.append((resource.name, existing))

        return self._result(resource, context)

    def _result(self, resource: 'Resource', context: 'ProvisioningContext') -> ProvisionResult:
        resolved = {
            key: context.resolver.resolve(value)
            for key, value in resource.parameters.items()
        }

        with self._lock:
            self.parameters[resource.name] = resolved

        return ProvisionResult(
            outputs=self.outputs.get(resource.name, {}),
            secret_outputs=self.secret_outputs.get(resource.name, {}),
        )


class CancellingProvisioner(RecordingProvisioner):
    """Provisioner cancelling the run while waiting for a deployment."""

    def __init__(self, cancel: 'Callable[[], None]') -> None:
        super().__init__()

        self.cancel = cancel

    def create(self, resource: 'Resource', context: 'ProvisioningContext') -> ProvisionResult:
        with self._lock:
            self.created.append(resource.name)

        self.cancel()
        context.wait(10)

        return self._result(resource, context)


class BarrierProvisioner(RecordingProvisioner):
    """Provisioner holding resources until all of them are being created.

    Creation fails with `BrokenBarrierError` unless the resources named
    in `parties` are created concurrently.
    """

    def __init__(self, parties: 'Iterable[str]', timeout: float = 5,
                 outputs: 'Mapping[str, dict[str, str]] | None' = None) -> None:
        super().__init__(outputs=outputs)

        self.parties = set(parties)
        self.barrier = Barrier(len(self.parties), timeout=timeout)

    def create(self, resource: 'Resource', context: 'ProvisioningContext') -> ProvisionResult:
        if resource.name in self.parties:
            self.barrier.wait()

        return super().create(resource, context)


def tagged(name: str, identifier: str, tag: str = DEFAULT_IDENTITY_TAG) -> dict[str, Any]:
    """Build an external object tagged with a resource identity."""
    return {'id': identifier, 'tags': {tag: name}}


def make_enumerator(kind: str) -> ResourceEnumerator:
    """Build an enumerator listing `scope[kind]`."""
    return ResourceEnumerator(
        kind=kind,
        list_objects=lambda scope: scope.get(kind, []),
        get_tags=lambda external: external.get('tags'),
    )
