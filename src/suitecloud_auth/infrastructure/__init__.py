"""
Infrastructure layer: HTTP transport and credential persistence.

The credential store is defined as an interface in ``repositories`` with a
JSON-file implementation in ``implementations.local``.
"""
