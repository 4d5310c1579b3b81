"""API router subpackage for the provisioning service.

Submodules:
    - databases: Endpoints for creating, dropping and dumping the configured
      database and for installing PostGIS into it.
"""
