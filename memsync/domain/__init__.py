"""
Domain coordinators for MemSync.

Each coordinator orchestrates one multi-store workflow over injected adapters.
"""
