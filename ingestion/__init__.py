"""
Ingestion Layer

RESPONSIBILITY: external data collaborators
OUTPUTS: FetchResult (record list), NeighborResult (relation service)

Both clients fail soft: network and payload errors come back as explicit
results carrying an Error, never as exceptions.
"""
