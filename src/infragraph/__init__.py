"""Resource graph modelling and deferred-value provisioning.

The `infragraph` package models infrastructure resources (databases,
message buses, storage accounts, key vaults and so on) declared at
application-definition time, and provisions or adopts them at startup.

Key features:
- a value algebra over partially-known data: literals, secrets,
  structured values, deferred callbacks and references to outputs of
  resources that are not deployed yet;
- connection-string expressions with `{resource.channel.key}` placeholders;
- dependency-ordered, layer-parallel provisioning with per-resource
  failure isolation and idempotent reconciliation by identity tag;
- redirection of local development resources to cloud counterparts.
"""
