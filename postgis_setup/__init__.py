"""PostGIS provisioning for PostgreSQL databases.

This package creates PostgreSQL databases and makes them spatially enabled:
it creates the schemas on the configured search path, installs PostGIS as an
extension or from the legacy SQL scripts, grants the owning user access to
the PostGIS objects and dumps or loads the resulting schema.

- Generic create/drop/purge/dump/load tasks for PostgreSQL databases
- PostGIS-specific setup layered on top, selected by adapter name
- Superuser credentials used only for the privileged steps
- A CLI and a small FastAPI service, both with a dry-run mode that prints
  the SQL instead of running it

See module docstrings for details on each layer.
"""
