"""Enumeration of existing external objects.

An enumerator lists the objects of one resource kind in an external
scope (such as a resource group) and extracts their tags. Dispatch uses
it to adopt an object already tagged with the identity of a resource
instead of creating a duplicate.

Enumeration is a read-only query: the sequence it produces is lazy and
restartable, and every iteration queries the scope afresh.
"""

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import TYPE_CHECKING, Any

from pydantic import Field

from infragraph.errors import InfraGraphError, Phase, ProvisioningFailure, ReconciliationAmbiguity
from infragraph.models import SchemaModel
from infragraph.names import ResourceKind  # noqa: TC001
from infragraph.settings import DEFAULT_IDENTITY_TAG

if TYPE_CHECKING:
    from infragraph.resources import Resource

logger = logging.getLogger(__name__)

#: External object as returned by a listing call.
type ExternalObject = Any

#: Callable listing the external objects of a scope.
type ObjectLister = Callable[[Any], Iterable[ExternalObject]]

#: Callable extracting the tags of an external object.
type TagGetter = Callable[[ExternalObject], Mapping[str, str] | None]


class ExternalObjects(Iterable[tuple[ExternalObject, dict[str, str]]]):
    """Lazy, restartable sequence of external objects and their tags.

    Nothing is queried until iteration starts; each new iteration calls
    the listing function again.
    """

    def __init__(self, enumerator: 'ResourceEnumerator', scope: Any) -> None:  # noqa: ANN401
        """Initialize the sequence.

        Args:
            enumerator: Enumerator providing the listing and tag accessors.
            scope: External scope to list.
        """
        self.enumerator = enumerator
        self.scope = scope

    def __iter__(self) -> Iterator[tuple[ExternalObject, dict[str, str]]]:
        for external in self.enumerator.list_objects(self.scope):
            yield external, dict(self.enumerator.get_tags(external) or {})


class ResourceEnumerator(SchemaModel):
    """Listing query and tag accessor for one resource kind."""

    kind: ResourceKind = Field(
        title='Resource kind',
        description='Kind of the resources whose external objects are listed.',
    )

    list_objects: ObjectLister = Field(
        title='Listing function',
        description='Callable receiving the external scope and returning its objects.',
    )

    get_tags: TagGetter = Field(
        title='Tag accessor',
        description='Callable returning the tags of an external object.',
    )

    def enumerate(self, scope: Any) -> ExternalObjects:  # noqa: ANN401
        """Enumerate the external objects of a scope lazily.

        Args:
            scope: External scope to list.

        Returns:
            A restartable iterable of `(object, tags)` pairs.
        """
        return ExternalObjects(self, scope)

    def find_existing(self, resource: 'Resource', scope: Any, *,  # noqa: ANN401
                      identity_tag: str = DEFAULT_IDENTITY_TAG) -> ExternalObject | None:
        """Find the external object tagged with the identity of a resource.

        Args:
            resource: Resource to reconcile.
            scope: External scope to list.
            identity_tag: Tag name holding the resource name.

        Returns:
            The single matching object, or `None` if there is none.

        Raises:
            ReconciliationAmbiguity: If several objects match.
            ProvisioningFailure: If listing the scope fails.
        """
        try:
            matches = [
                external
                for external, tags in self.enumerate(scope)
                if tags.get(identity_tag) == resource.name
            ]

        except InfraGraphError:
            raise

        except Exception as base:
            raise ProvisioningFailure(
                f'Failed to enumerate {self.kind!r} objects: {base}',
                resource=resource.name,
                phase=Phase.ENUMERATE,
            ) from base

        if len(matches) > 1:
            raise ReconciliationAmbiguity(
                f'{len(matches)} external objects are tagged with {resource.name!r}',
                resource=resource.name,
                matches=len(matches),
            )

        if matches:
            logger.debug('Found existing object for %r', resource.name)
            return matches[0]

        return None
