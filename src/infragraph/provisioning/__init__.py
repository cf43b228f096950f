"""Provisioning of resource graphs.

This package selects the provisioner and enumerator of every resource
and provisions a graph in dependency order.

The primary public entry point is `Dispatcher`, which validates a graph,
reconciles each resource against existing external objects, and reports
a per-resource outcome.
"""

from .dispatch import (
    Dispatcher,
    ProvisioningContext,
    ProvisioningOutcome,
    ProvisioningReport,
    Status,
)
from .registry import PLUGINS_GROUP, ProvisionerRegistry

__all__ = (
    'PLUGINS_GROUP',
    'Dispatcher',
    'ProvisionerRegistry',
    'ProvisioningContext',
    'ProvisioningOutcome',
    'ProvisioningReport',
    'Status',
)
