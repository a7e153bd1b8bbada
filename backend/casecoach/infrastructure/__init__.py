"""Infrastructure Layer — database, external service clients, logging.

Invariants:
    - Infrastructure never imports from services/ or api/
    - Every external failure is mapped to a DependencyError subclass (core/errors.py)
"""
