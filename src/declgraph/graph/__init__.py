"""Graph core: keys, nodes, edges and the Graph itself.

This layer depends on stdlib, the service result models (for error
payloads) and NetworkX (for the export view).
It must never import from config or the session adapter.
"""
