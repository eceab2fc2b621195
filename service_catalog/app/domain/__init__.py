"""
Domain helpers for the Catalog Service: product normalization and
read-only queries over a catalog snapshot.
"""
