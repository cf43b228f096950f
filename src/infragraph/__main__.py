"""CLI utilities for infragraph.

The commands inspect the installation: the JSON Schema of manifest
documents and the provisioner bindings contributed by plugins. None of
them provisions resources.
"""

from click import echo, group, option

from infragraph.jsonschema import SchemaGenerator
from infragraph.provisioning import ProvisionerRegistry


@group(help='Command-line utilities for infragraph.')
def cli() -> None:
    """Root CLI group for infragraph tools."""
    return None


@cli.command(
    name='schema',
    help='Print the manifest JSON Schema to standard output.',
)
@option(
    '-i', '--indent',
    type=int,
    default=4,
    show_default=True,
    help='Indentation of the printed schema.',
)
def print_schema(indent: int) -> None:
    """Generate and print the JSON Schema."""
    echo(SchemaGenerator.make_schema(indent))


@cli.command(
    name='plugins',
    help='List resource kinds with a registered provisioner or enumerator.',
)
@option(
    '--strict',
    is_flag=True,
    default=False,
    help='Fail on plugin loading issues instead of warning.',
)
def list_plugins(strict: bool) -> None:
    """Load plugins and print the bound kinds.

    Args:
        strict: Whether plugin loading issues raise errors.
    """
    registry = ProvisionerRegistry(strict=strict)
    registry.load_plugins()

    for kind in registry.kinds():
        echo(f'provisioner\t{kind}')

    for kind in sorted(registry.enumerators):
        echo(f'enumerator\t{kind}')


if __name__ == '__main__':
    cli()
