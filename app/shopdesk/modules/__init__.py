"""
Feature modules live under this package.

Each module owns its models/service/routes and reuses the platform primitives
(document store, active shop, audit, DB session).
"""
