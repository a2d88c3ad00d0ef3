"""Exception hierarchy for the chat relay and memory pipeline."""


class RapportError(Exception):
    """Base class for all rapport errors."""


class ConfigError(RapportError):
    """Process configuration is missing or invalid."""


class EncryptionConfigError(ConfigError):
    """Encryption was requested but no master key is configured."""


class ProviderConfigError(ConfigError):
    """A provider is unknown or its credentials are missing."""


class UpstreamProviderError(RapportError):
    """The upstream model stream failed or returned malformed data."""


class ExtractionError(RapportError):
    """The fact extraction call failed or returned unparsable content."""


class PersistenceError(RapportError):
    """Writing to the durable store failed."""


class DecryptionError(RapportError):
    """A value is not a valid ciphertext envelope for the given user."""


class InvalidRequestError(RapportError):
    """The inbound chat request is missing required fields."""


class PersonaNotFoundError(RapportError):
    """No persona with the requested id exists in the catalog."""
