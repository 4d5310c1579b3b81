"""Connection abstractions and the provisioning configuration record.

Example:
    >>> from postgis_setup.db import database, models
    >>> connection = database.connect(models.DatabaseConfiguration(...))
"""
