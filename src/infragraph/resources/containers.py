"""Local container resources.

Containers run next to the application during development. Their
connection string is built from the first allocated endpoint until they
are redirected to a cloud counterpart.
"""

from infragraph.errors import UnresolvedReferenceError
from infragraph.redirection import RedirectableMixin

from .base import AllocatedEndpoint, Resource


class ContainerResource(RedirectableMixin, Resource):
    """Resource running as a local container image."""

    kind = 'container'
    manifest_type = 'container.v0'

    def __init__(self, name: str, image: str, *, tag: str = 'latest') -> None:
        """Initialize a container resource.

        Args:
            name: Unique name of the resource.
            image: Container image name.
            tag: Container image tag.
        """
        super().__init__(name)

        self.image = image
        self.tag = tag

    @property
    def image_reference(self) -> str:
        """Image name and tag joined as `image:tag`."""
        return f'{self.image}:{self.tag}'

    def primary_endpoint(self) -> AllocatedEndpoint:
        """Return the first allocated endpoint.

        Raises:
            UnresolvedReferenceError: If no endpoint is allocated yet.
        """
        endpoints = self.annotations_of(AllocatedEndpoint)
        if not endpoints:
            raise UnresolvedReferenceError(
                f'Resource {self.name!r} has no allocated endpoint',
                resource=self.name,
                channel='endpoint',
            )

        return endpoints[0]

    def local_connection_string(self) -> str:
        """Connection string of the primary endpoint (`address:port`)."""
        return self.primary_endpoint().endpoint_string

    def is_local_container(self) -> bool:
        """Container resources always run as containers locally."""
        return True
