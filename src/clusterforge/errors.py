class ClusterForgeError(Exception):
    """Base class for every error raised by clusterforge itself."""


class ConfigurationError(ClusterForgeError, ValueError):
    """Invalid or missing configuration input.

    Raised before any resource is declared. ``field`` names the offending
    configuration key.
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")


class NodePoolOverrideError(ConfigurationError):
    """The ``nodePools`` override is not valid JSON or not a valid pool list."""

    def __init__(self, message: str) -> None:
        super().__init__("nodePools", message)


class ProviderMismatchError(ClusterForgeError):
    """A topology builder was invoked without its provider-specific block."""

    def __init__(self, block: str, builder: str) -> None:
        self.block = block
        super().__init__(
            f"{block} configuration is required for {builder} cluster"
        )
