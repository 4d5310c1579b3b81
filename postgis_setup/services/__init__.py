"""Provisioning task classes and the adapter registry.

Submodules:
    - database_tasks: Generic PostgreSQL create/drop/dump/load tasks.
    - postgis_tasks: PostGIS installation layered on the generic tasks.
    - registry: Adapter-name lookup of task classes.
"""
