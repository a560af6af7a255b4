"""Utility modules for feedbackFlow.

- **errors** -- Domain exception hierarchy rooted at FeedbackFlowError;
  store, oracle and workflow failures each have their own subclass so the
  API can map them to HTTP statuses.
- **concurrency** -- semaphore-throttled ``asyncio.gather`` used by the
  backlog sweep.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    ConfigurationError,
    FeedbackFlowError,
    FeedbackNotFoundError,
    LLMError,
    ProviderUnavailableError,
    StoreUnavailableError,
    WorkflowCreationError,
    WorkflowError,
    WorkflowNotFoundError,
)

# -- Async concurrency helpers ---------------------------------------------
from src.utils.concurrency import throttled_gather

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "FeedbackFlowError",
    "FeedbackNotFoundError",
    "LLMError",
    "ProviderUnavailableError",
    "StoreUnavailableError",
    "WorkflowCreationError",
    "WorkflowError",
    "WorkflowNotFoundError",
    "configure_logging",
    "get_logger",
    "throttled_gather",
]
