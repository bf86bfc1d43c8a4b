"""
deskvoice - natural-language commands for desktop UI automation.
"""

from deskvoice.core import Scheduler
from deskvoice.device import AutomationCapability, SimElement, SimulatedBackend, get_capability
from deskvoice.errors import (
    BackendError,
    ConfigError,
    DeskVoiceError,
    LanguageResourceError,
    LocaleNotFound,
    NoIntentMatched,
    ResolutionError,
    TaskNotFoundError,
)
from deskvoice.execution import Executor, WorkerPool
from deskvoice.language import IntentResolver, LanguageResourceStore
from deskvoice.models import (
    ActionKind,
    ActionSpec,
    ElementSelector,
    Intent,
    Outcome,
    StatusReport,
    Task,
    TaskFailureReason,
    TaskStatus,
)
from deskvoice.service import CommandService
from deskvoice.utils import AppConfig, load_config

__version__ = "0.1.0"

__all__ = [
    "ActionKind",
    "ActionSpec",
    "AppConfig",
    "AutomationCapability",
    "BackendError",
    "CommandService",
    "ConfigError",
    "DeskVoiceError",
    "ElementSelector",
    "Executor",
    "Intent",
    "IntentResolver",
    "LanguageResourceError",
    "LanguageResourceStore",
    "LocaleNotFound",
    "NoIntentMatched",
    "Outcome",
    "ResolutionError",
    "Scheduler",
    "SimElement",
    "SimulatedBackend",
    "StatusReport",
    "Task",
    "TaskFailureReason",
    "TaskNotFoundError",
    "TaskStatus",
    "WorkerPool",
    "get_capability",
    "load_config",
]
