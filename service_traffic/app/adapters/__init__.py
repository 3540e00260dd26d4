"""
Upstream adapters for the traffic service.

Holds the HERE flow client, upstream credential resolution and the
cache-aware, degrading traffic lookup built on top of them.
"""
