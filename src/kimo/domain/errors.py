"""Domain error hierarchy.

Every error the core raises on purpose derives from ``KimoError`` so that
recovery boundaries can tell expected failures from programming errors.
"""


class KimoError(Exception):
    """Base class for all KIMO domain errors."""


class ValidationError(KimoError):
    """Malformed or out-of-range user input."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class MissingConfigurationError(KimoError):
    """A financial calculation was requested before onboarding finished."""

    def __init__(self, user_id: str | None):
        self.user_id = user_id
        super().__init__(f"Driver configuration not found for user {user_id}")


class NotFoundError(KimoError):
    """A referenced entity does not exist."""

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")


class PersistenceError(KimoError):
    """A repository write failed and was rolled back."""


class CollaboratorError(KimoError):
    """An external collaborator (gateway, STT, NLP) failed or timed out."""


class TranscriptionError(CollaboratorError):
    """Speech-to-text failed or timed out."""


class NLPError(CollaboratorError):
    """Natural-language extraction failed or returned unusable output."""
