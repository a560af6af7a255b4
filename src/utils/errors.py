"""Custom exception hierarchy for feedbackFlow.

All application exceptions inherit from :class:`FeedbackFlowError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "sqlite_feedback") caused the failure.

The hierarchy is organized by where the failure originates:

    FeedbackFlowError  (base -- catch-all for any feedbackFlow error)
    +-- FeedbackNotFoundError    (referenced feedback row does not exist)
    +-- StoreUnavailableError    (durable store unreachable / query failed)
    +-- LLMError                 (any classification-oracle call failure)
    +-- ProviderUnavailableError (oracle not configured / unreachable)
    +-- WorkflowError            (invalid params, illegal phase transition)
    +-- WorkflowNotFoundError    (no journal row for an instance id)
    +-- WorkflowCreationError    (trigger could not start an instance)
    +-- ConfigurationError       (startup / missing config)

Only ``FeedbackNotFoundError`` and ``StoreUnavailableError`` may abort a
workflow instance.  Oracle errors are always absorbed by the keyword
fallbacks, and ``WorkflowCreationError`` is absorbed by the dispatcher's
inline fallback.
"""


class FeedbackFlowError(Exception):
    """Base exception for all feedbackFlow errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Durable store errors
# ---------------------------------------------------------------------------

class FeedbackNotFoundError(FeedbackFlowError):
    """Raised when a referenced feedback id has no row in the store."""

    def __init__(
        self,
        message: str = "Feedback not found",
        provider_name: str | None = None,
        feedback_id: int | None = None,
    ) -> None:
        self._feedback_id = feedback_id
        super().__init__(message=message, provider_name=provider_name)

    @property
    def feedback_id(self) -> int | None:
        return self._feedback_id


class StoreUnavailableError(FeedbackFlowError):
    """Raised when the durable store cannot be reached or a query fails."""

    def __init__(
        self,
        message: str = "Database not available",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Classification oracle errors
# ---------------------------------------------------------------------------

class ProviderUnavailableError(FeedbackFlowError):
    """Raised when an external service or provider is unreachable.

    The classifier and chat service catch this to switch to their
    keyword-based fallbacks.
    """

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(FeedbackFlowError):
    """Raised when an LLM API call fails or returns an unusable response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Workflow errors
# ---------------------------------------------------------------------------

class WorkflowError(FeedbackFlowError):
    """Raised for invalid workflow params or an illegal phase transition."""

    def __init__(
        self,
        message: str = "Workflow execution failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class WorkflowNotFoundError(FeedbackFlowError):
    """Raised when no journal row exists for a workflow instance id."""

    def __init__(
        self,
        message: str = "Workflow instance not found",
        provider_name: str | None = None,
        instance_id: str | None = None,
    ) -> None:
        self._instance_id = instance_id
        super().__init__(message=message, provider_name=provider_name)

    @property
    def instance_id(self) -> str | None:
        return self._instance_id


class WorkflowCreationError(FeedbackFlowError):
    """Raised when the trigger cannot register or start a workflow instance.

    The dispatcher catches this and processes the record inline instead.
    """

    def __init__(
        self,
        message: str = "Failed to create workflow",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(FeedbackFlowError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
