"""Public interface definitions for all external collaborators.

Every external service in feedbackFlow is accessed exclusively through the
abstract base classes defined in this package.  Concrete adapters implement
these interfaces and are injected at startup in ``src/main.py``.

CONCRETE PROVIDER MAP:
    Interface          →  Concrete implementations
    ─────────────────────────────────────────────────────────────────────
    ILLMProvider       →  OpenAILLMProvider, AnthropicLLMProvider,
                          OllamaLLMProvider          (src/providers/llm/)
    IFeedbackStore     →  SQLiteFeedbackStore        (src/providers/feedback/)
    IStepStore         →  SQLiteStepStore, MemoryStepStore
                                                     (src/providers/workflow/)
    IWorkflowTrigger   →  LocalWorkflowTrigger       (src/pipeline/trigger.py)
    ICacheProvider     →  MemoryCacheProvider        (src/providers/cache/)
"""

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.feedback_store import IFeedbackStore
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.step_store import IStepStore
from src.interfaces.workflow_trigger import IWorkflowTrigger

__all__ = [
    "ICacheProvider",
    "IFeedbackStore",
    "ILLMProvider",
    "IStepStore",
    "IWorkflowTrigger",
]
