"""
Traffic service caching package.

Provides the in-process TTL store, the optional distributed backends, the
tiered cache facade and the per-namespace registry. Caches are short-lived
and explicitly invalidated; fallback values are never written to them.
"""
