"""Redirection of local resources to cloud counterparts.

A resource that runs locally during development (a container with an
allocated endpoint) can be promoted to a cloud-provisioned counterpart.
The local resource keeps exposing one connection-string surface in both
states:

- `LOCAL`: no counterpart attached; queries use local fields, such as
  the allocated endpoint.
- `REDIRECTED`: a counterpart is attached; connection-string and
  container-mode queries delegate to it, even when local fields are
  also populated.

The transition from `LOCAL` to `REDIRECTED` happens once, when the
promotion is declared, and is never reversed.

A counterpart can also be attached for publishing only: manifests then
describe the counterpart, while runtime queries stay local.
"""

import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from infragraph.errors import RedirectionError

if TYPE_CHECKING:
    from infragraph.graph import ResourceGraph
    from infragraph.resources import Resource

logger = logging.getLogger(__name__)


class RedirectState(StrEnum):
    """Redirection state of a local resource."""

    LOCAL = 'local'
    REDIRECTED = 'redirected'


class RedirectableMixin:
    """Mixin adding the redirection state machine to a local resource.

    Implementers provide `local_connection_string()` and
    `is_local_container()`; the mixin routes public queries either to
    those or to the attached counterpart.
    """

    name: str
    graph: 'ResourceGraph | None'

    redirect: 'Resource | None' = None
    publish_target: 'Resource | None' = None

    @property
    def redirect_state(self) -> RedirectState:
        """Current redirection state."""
        if self.redirect is None:
            return RedirectState.LOCAL

        return RedirectState.REDIRECTED

    def _check_counterpart(self, cloud: 'Resource') -> None:
        """Validate a counterpart before attaching it.

        Raises:
            RedirectionError: If the counterpart is the resource itself
                or does not share its identity.
        """
        if cloud is self:
            raise RedirectionError(
                f'Resource {self.name!r} can not be redirected to itself',
                resource=self.name,
            )

        if cloud.name != self.name:
            raise RedirectionError(
                f'Counterpart {cloud.name!r} must share the identity of {self.name!r}',
                resource=self.name,
            )

    def redirect_to(self, cloud: 'Resource') -> 'Resource':
        """Promote the resource to a cloud counterpart.

        Args:
            cloud: Counterpart resource, sharing the name of this one.

        Returns:
            The counterpart.

        Raises:
            RedirectionError: If the resource is already redirected or
                the counterpart is invalid.
        """
        if self.redirect is not None:
            raise RedirectionError(
                f'Resource {self.name!r} is already redirected',
                resource=self.name,
            )

        self._check_counterpart(cloud)

        self.redirect = cloud
        if self.graph is not None:
            cloud.bind(self.graph)

        logger.debug('Redirected %r to %s', self.name, type(cloud).__name__)

        return cloud

    def publish_as(self, cloud: 'Resource') -> 'Resource':
        """Attach a counterpart used for publishing only.

        Runtime queries keep using local fields; manifests describe the
        counterpart instead of the local resource.

        Args:
            cloud: Counterpart resource, sharing the name of this one.

        Returns:
            The counterpart.

        Raises:
            RedirectionError: If a publish target is already attached or
                the counterpart is invalid.
        """
        if self.publish_target is not None:
            raise RedirectionError(
                f'Resource {self.name!r} already has a publish target',
                resource=self.name,
            )

        self._check_counterpart(cloud)

        self.publish_target = cloud
        if self.graph is not None:
            cloud.bind(self.graph)

        return cloud

    def bind(self, graph: 'ResourceGraph') -> None:
        """Attach the resource and its counterparts to a graph."""
        self.graph = graph
        for counterpart in (self.redirect, self.publish_target):
            if counterpart is not None:
                counterpart.bind(graph)

    def effective_resource(self) -> 'Resource':
        """Counterpart when redirected, otherwise the resource itself."""
        if self.redirect is not None:
            return self.redirect.effective_resource()

        return self  # type: ignore[return-value]

    def published_resource(self) -> 'Resource':
        """Counterpart written to manifests, if any."""
        if self.redirect is not None:
            return self.redirect

        if self.publish_target is not None:
            return self.publish_target

        return self  # type: ignore[return-value]

    @property
    def connection_string_expression(self) -> str | None:
        """Expression template of the counterpart, when redirected.

        A local resource has no expression: its connection string is
        built from allocated endpoints.
        """
        if self.redirect is not None:
            return self.redirect.connection_string_expression

        return None

    def get_connection_string(self) -> str:
        """Resolve the connection string in the current state."""
        if self.redirect is not None:
            return self.redirect.get_connection_string()

        return self.local_connection_string()

    def is_container(self) -> bool:
        """Whether the resource runs as a local container."""
        if self.redirect is not None:
            return self.redirect.is_container()

        return self.is_local_container()

    def local_connection_string(self) -> str:
        """Connection string built from local fields."""
        raise NotImplementedError  # pragma: no cover

    def is_local_container(self) -> bool:
        """Whether the local variant runs as a container."""
        raise NotImplementedError  # pragma: no cover
