"""Service layer: the embedding-runtime binding and its result contracts.

Services may import from the graph and config layers.
"""
