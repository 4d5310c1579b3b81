"""Settings, logging setup and the exception hierarchy."""
