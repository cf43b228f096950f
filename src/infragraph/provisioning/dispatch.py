"""Dependency-ordered provisioning of a resource graph.

The dispatcher validates the whole graph before any external call, then
provisions it layer by layer: the resources of one layer run
concurrently on a worker pool, and a layer starts only once the previous
one has completed. Each resource is reconciled against existing external
objects first and created only when none carries its identity tag.

A failure is reported against the failing resource. Every resource
depending on it is skipped, while independent branches keep
provisioning. Cancelling a run marks every resource that has not started
yet as cancelled; finished resources are left as they are.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from enum import StrEnum
from threading import Event
from typing import TYPE_CHECKING, Any

from pydantic import Field

from infragraph.environment import ExecutionContext
from infragraph.errors import DependencyFailure, InfraGraphError, ProvisioningCancelled, ProvisioningFailure
from infragraph.expressions import Resolver
from infragraph.models import SchemaModel
from infragraph.names import ResourceName  # noqa: TC001
from infragraph.settings import ProvisionerSettings

from .registry import ProvisionerRegistry

if TYPE_CHECKING:
    from collections.abc import Iterator
    from concurrent.futures import Future

if TYPE_CHECKING:
    from infragraph.graph import ResourceGraph
    from infragraph.resources import Resource

logger = logging.getLogger(__name__)


class Status(StrEnum):
    """Outcome status of a resource in a run."""

    PROVISIONED = 'provisioned'
    ADOPTED = 'adopted'
    FAILED = 'failed'
    SKIPPED = 'skipped'
    CANCELLED = 'cancelled'


#: Statuses of resources whose outputs are available.
SUCCESS_STATUSES = frozenset((Status.PROVISIONED, Status.ADOPTED))


class ProvisioningOutcome(SchemaModel):
    """Outcome of one resource in a provisioning run."""

    resource: ResourceName
    kind: str = Field(
        title='Resource kind',
        description='Kind of the provisioned resource (the counterpart kind when redirected).',
    )
    status: Status
    error: InfraGraphError | None = Field(
        default=None,
        title='Error',
        description='Error reported against the resource, unless it succeeded.',
    )

    @property
    def succeeded(self) -> bool:
        """Whether the outputs of the resource are available."""
        return self.status in SUCCESS_STATUSES


class ProvisioningReport:
    """Per-resource outcomes of a run, in provisioning order."""

    def __init__(self) -> None:
        """Initialize an empty report."""
        self.outcomes: list[ProvisioningOutcome] = []

    def __getitem__(self, name: str) -> ProvisioningOutcome:
        for outcome in self.outcomes:
            if outcome.resource == name:
                return outcome

        raise KeyError(name)

    def __iter__(self) -> 'Iterator[ProvisioningOutcome]':
        return iter(self.outcomes)

    def __len__(self) -> int:
        return len(self.outcomes)

    def add(self, outcome: ProvisioningOutcome) -> None:
        """Record the outcome of a resource."""
        self.outcomes.append(outcome)

    @property
    def succeeded(self) -> list[ProvisioningOutcome]:
        """Outcomes of provisioned and adopted resources."""
        return [outcome for outcome in self.outcomes if outcome.succeeded]

    @property
    def failed(self) -> list[ProvisioningOutcome]:
        """Outcomes of failed, skipped, and cancelled resources."""
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    @property
    def ok(self) -> bool:
        """Whether every resource succeeded."""
        return not self.failed

    def raise_for_errors(self) -> None:
        """Raise the first root failure of the run, if any.

        Failures of resources themselves take precedence over skipped
        dependents and cancellations.

        Raises:
            InfraGraphError: The error of the first unsuccessful resource.
        """
        failed = self.failed
        if not failed:
            return

        root = next(
            (outcome for outcome in failed if outcome.status == Status.FAILED),
            failed[0],
        )
        if root.error is not None:
            raise root.error

        raise ProvisioningFailure(f'Resource {root.resource!r} was {root.status}', resource=root.resource)


class ProvisioningContext:
    """Context handed to provisioners for one resource.

    Attributes:
        settings: Settings of the run.
        scope: External scope, such as a resource group client, passed
            to enumerators and provisioners as is.
        resolver: Resolver over the graph being provisioned.
        execution_context: Context of the current execution.
        cancellation: Run-level cancellation signal.
        resource: Name of the resource being provisioned.
    """

    def __init__(self, settings: ProvisionerSettings, scope: Any,  # noqa: ANN401
                 resolver: Resolver, execution_context: ExecutionContext,
                 cancellation: Event, resource: str | None = None) -> None:
        """Initialize a provisioning context."""
        self.settings = settings
        self.scope = scope
        self.resolver = resolver
        self.execution_context = execution_context
        self.cancellation = cancellation
        self.resource = resource

    def for_resource(self, name: str) -> 'ProvisioningContext':
        """Derive the context of a single resource."""
        return ProvisioningContext(
            self.settings,
            self.scope,
            self.resolver,
            self.execution_context,
            self.cancellation,
            resource=name,
        )

    @property
    def cancelled(self) -> bool:
        """Whether the run was cancelled."""
        return self.cancellation.is_set()

    def check_cancelled(self) -> None:
        """Abort the current step if the run was cancelled.

        Raises:
            ProvisioningCancelled: If the run was cancelled.
        """
        if self.cancellation.is_set():
            raise ProvisioningCancelled('Provisioning run was cancelled', resource=self.resource)

    def wait(self, seconds: float) -> None:
        """Sleep while waiting for an external operation.

        The wait is interrupted as soon as the run is cancelled.

        Raises:
            ProvisioningCancelled: If the run is cancelled before or
                during the wait.
        """
        if self.cancellation.wait(seconds):
            raise ProvisioningCancelled('Provisioning run was cancelled', resource=self.resource)


class Dispatcher:
    """Provisioner dispatch over a resource graph.

    Attributes:
        registry: Registry selecting provisioners and enumerators.
        settings: Settings of the runs.
        cancellation: Cancellation signal of the current run.
    """

    def __init__(self, registry: ProvisionerRegistry | None = None,
                 settings: ProvisionerSettings | None = None) -> None:
        """Initialize a dispatcher.

        Args:
            registry: Registry to use; a registry with the built-in
                provisioners and the installed plugins by default.
            settings: Settings of the runs; read from the environment
                by default.
        """
        self.settings = settings or ProvisionerSettings()

        if registry is None:
            registry = ProvisionerRegistry(strict=self.settings.strict_plugins)
            registry.load_plugins()

        self.registry = registry
        self.cancellation = Event()

    def cancel(self) -> None:
        """Cancel the current run.

        Resources that have not started are marked as cancelled, and
        provisioners waiting through their context are interrupted.
        """
        logger.debug('Cancelling pending resources')
        self.cancellation.set()

    def check(self, graph: 'ResourceGraph') -> None:
        """Validate a graph before any external call.

        Raises:
            UnknownResourceError: If a reference names an undeclared resource.
            CycleError: If reference edges form a cycle.
            ExpressionSyntaxError: If an expression is malformed.
            UnsupportedKindError: If no provisioner handles a resource.
        """
        graph.validate()

        for resource in graph.resources():
            self.registry.provisioner_for(resource.effective_resource())

    def provision(self, graph: 'ResourceGraph', scope: Any = None, *,  # noqa: ANN401
                  rerun: bool = False,
                  execution_context: ExecutionContext | None = None) -> ProvisioningReport:
        """Provision every resource of a graph in dependency order.

        Args:
            graph: Graph to provision.
            scope: External scope passed to enumerators and provisioners.
            rerun: Whether outputs written by a previous run may change.
            execution_context: Context of the execution; run by default.

        Returns:
            The per-resource outcomes.

        Raises:
            ConfigurationError: If the graph is invalid; raised before
                any provisioner is called.
        """
        self.check(graph)
        self.cancellation.clear()

        context = ProvisioningContext(
            self.settings,
            scope,
            Resolver(graph),
            execution_context or ExecutionContext(),
            self.cancellation,
        )

        return self._perform(graph, context, rerun)

    def _perform(self, graph: 'ResourceGraph', context: ProvisioningContext,
                 rerun: bool) -> ProvisioningReport:
        """Provision the layers of a validated graph."""
        edges = graph.edges()
        report = ProvisioningReport()
        unavailable: set[str] = set()

        with ThreadPoolExecutor(max_workers=self.settings.max_workers,
                                thread_name_prefix='infragraph') as executor:
            try:
                self._perform_layers(executor, graph, context, rerun, edges, report, unavailable)
            except KeyboardInterrupt:
                logger.debug('Received KeyboardInterrupt; cancelling pending resources')
                self.cancel()
                executor.shutdown(wait=False, cancel_futures=True)
                raise

        return report

    def _perform_layers(self, executor: ThreadPoolExecutor, graph: 'ResourceGraph',
                        context: ProvisioningContext, rerun: bool,
                        edges: dict[str, list[str]], report: ProvisioningReport,
                        unavailable: set[str]) -> None:
        """Run the layers one after another, awaiting each of them."""
        for layer in graph.layers():
            pending = {
                resource.name: self._schedule(
                    executor, resource, context, edges[resource.name], unavailable, rerun,
                )
                for resource in layer
            }

            for name, scheduled in pending.items():
                outcome = scheduled if isinstance(scheduled, ProvisioningOutcome) else scheduled.result()
                report.add(outcome)
                if not outcome.succeeded:
                    unavailable.add(name)

    def _schedule(self, executor: ThreadPoolExecutor, resource: 'Resource',
                  context: ProvisioningContext, dependencies: list[str],
                  unavailable: set[str],
                  rerun: bool) -> 'Future[ProvisioningOutcome] | ProvisioningOutcome':
        """Submit a resource, or settle it without running it."""
        kind = resource.effective_resource().kind

        if self.cancellation.is_set():
            return ProvisioningOutcome(
                resource=resource.name,
                kind=kind,
                status=Status.CANCELLED,
                error=ProvisioningCancelled('Provisioning run was cancelled', resource=resource.name),
            )

        for dependency in dependencies:
            if dependency in unavailable:
                logger.warning('Skipping %r: dependency %r was not provisioned', resource.name, dependency)
                return ProvisioningOutcome(
                    resource=resource.name,
                    kind=kind,
                    status=Status.SKIPPED,
                    error=DependencyFailure(resource.name, dependency),
                )

        return executor.submit(self._provision_one, resource, context.for_resource(resource.name), rerun)

    def _provision_one(self, resource: 'Resource', context: ProvisioningContext,
                       rerun: bool) -> ProvisioningOutcome:
        """Reconcile or create one resource and record its outputs.

        A redirected local resource is provisioned as its counterpart.
        """
        target = resource.effective_resource()
        status = Status.PROVISIONED

        try:
            context.check_cancelled()

            provisioner = self.registry.provisioner_for(target)

            existing = None
            if enumerator := self.registry.enumerator_for(target):
                existing = enumerator.find_existing(
                    target,
                    context.scope,
                    identity_tag=self.settings.identity_tag,
                )

            context.check_cancelled()

            if existing is not None:
                logger.debug('Adopting %r (kind %r)', resource.name, target.kind)
                result = provisioner.adopt(target, existing, context)
                status = Status.ADOPTED
            else:
                logger.debug('Creating %r (kind %r)', resource.name, target.kind)
                result = provisioner.create(target, context)

            target.write_outputs(result.outputs, result.secret_outputs, overwrite=rerun)

        except ProvisioningCancelled as error:
            logger.warning('Cancelled %r', resource.name)
            return ProvisioningOutcome(
                resource=resource.name,
                kind=target.kind,
                status=Status.CANCELLED,
                error=error,
            )

        except InfraGraphError as error:
            logger.error('Failed to provision %r (kind %r) during %s', resource.name, target.kind, error.phase)
            return ProvisioningOutcome(
                resource=resource.name,
                kind=target.kind,
                status=Status.FAILED,
                error=error,
            )

        except Exception as base:
            logger.error('Failed to provision %r (kind %r)', resource.name, target.kind)
            error = ProvisioningFailure(
                f'Provisioner failed: {base}',
                resource=resource.name,
                context={'kind': target.kind, 'error': base, 'element': target.snapshot()},
            )
            error.__cause__ = base
            return ProvisioningOutcome(
                resource=resource.name,
                kind=target.kind,
                status=Status.FAILED,
                error=error,
            )

        logger.info('Resource %r (kind %r) %s', resource.name, target.kind, status)

        return ProvisioningOutcome(resource=resource.name, kind=target.kind, status=status)
