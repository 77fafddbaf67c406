"""Configuration reconciliation and synchronization engine.

Layers, leaves first:

- **schema**: field validators, defaults, v1 -> v2 migration
- **cache**: namespaced key/value cache scoped per repository
- **remote**: the versioned config file behind the injected Git capability
- **sync_lock**: single-flight gate around remote mutations
- **workspace**: in-memory settings + collections
- **reconcile**: the multi-phase bootstrap
- **progress**: scan phase / percentage state
- **manager**: action functions consumed by the UI layer
"""
