"""Exception types shared by the registry, the HTTP API and the CLI."""


class DevrpError(Exception):
    """Base class for all devrp errors."""


class RegistryError(DevrpError):
    """A caller-facing registry failure with an HTTP status and wire message."""

    status = 400
    message = "bad request"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidRequest(RegistryError):
    status = 400
    message = "invalid json"


class InvalidIdentifier(RegistryError):
    status = 400
    message = "invalid subdomain format"


class InvalidPort(RegistryError):
    status = 400
    message = "invalid port"


class AlreadyRegistered(RegistryError):
    status = 409
    message = "subdomain already in use"


class NotFound(RegistryError):
    status = 404
    message = "client not found"


class PersistenceFailure(DevrpError):
    """The routing document could not be written to the shared directory."""


class ConfigError(DevrpError):
    """Startup configuration is unusable."""


class RegistrationFailed(DevrpError):
    """The registry rejected (or never answered) a registration request."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)
