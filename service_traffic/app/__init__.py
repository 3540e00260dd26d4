"""
Traffic service package for the Daylight backend.

Proxies third-party traffic data behind a resilient lookup:
- Caching: per-namespace tiered cache (in-process or distributed store)
- Resilience: timeout + bounded retry around the upstream call
- Degradation: synthesized, never-cached fallback results

Structure:
- app.main: composition root and application lifecycle.
- app.caching: TTL store, distributed backends, tiered cache, registry.
- app.adapters: HERE client, credentials, traffic lookup.
- app.models: result and provenance types.
"""
