"""Exception hierarchy for database provisioning.

Driver errors are wrapped in StatementInvalid so that task code can inspect
the server message without depending on psycopg2. Task-level failures get
their own types so callers (the CLI and the HTTP layer) can map them to exit
codes and status codes.

Example:
    Distinguish an existing database from other failures:
        >>> from postgis_setup.core import errors
        >>> try:
        ...     tasks.create()
        ... except errors.DatabaseAlreadyExists:
        ...     print("already there")
"""


class ProvisioningError(Exception):
    """Base class for every error raised by this package."""


class StatementInvalid(ProvisioningError):
    """A SQL statement was rejected by the server or the driver.

    The message is the server's error text; the driver exception is chained
    as ``__cause__``.
    """


class ConnectionNotEstablished(ProvisioningError):
    """The server refused the connection attempt."""


class DatabaseAlreadyExists(ProvisioningError):
    """CREATE DATABASE was issued for a database that already exists."""


class DatabaseNotSupported(ProvisioningError):
    """No task class is registered for the configured adapter."""


class ConfigurationError(ProvisioningError, ValueError):
    """The provisioning configuration is invalid or incomplete."""


class CommandError(ProvisioningError, RuntimeError):
    """Exception raised when an external PostgreSQL utility fails.

    Raised when ``pg_dump``, ``psql`` or ``pg_config`` exits with a non-zero
    status code. The message contains the command's stderr output.

    Example:
        Handle dump failures:
            >>> try:
            ...     tasks.structure_dump("structure.sql")
            ... except CommandError as e:
            ...     print(f"pg_dump failed: {e}")
    """
