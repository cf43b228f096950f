"""Test suite for the infragraph package.

This package contains unit and integration tests validating the value
algebra, expression resolution, graph ordering, redirection, plugin
registration, and dependency-ordered provisioning of resource graphs.
"""
