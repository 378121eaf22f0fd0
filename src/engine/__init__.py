"""Engine Layer - Conversion Orchestration

This module provides the core engine layer for the converter, implementing:
- ConversionOrchestrator: Main entry point for conversion jobs
- TimeoutGovernor: Signal/poll waits raced against per-phase deadlines
- CompletionStrategy: Event / polling / settle-delay completion detection
- SignalDispatcher: Positional interpretation of editor sentinels
- ConversionReport: Standardized result format
"""

from .budget import BudgetManager, PhaseBudgetConfig
from .orchestrator import ConversionOrchestrator
from .outcome import ChannelError, Phase, PhaseOutcome, ProcessError, Success, TimedOut
from .result import ConversionJob, ConversionReport, ConversionResult, ConversionStatus
from .signals import (
    ProtocolSignal,
    SentinelMeaning,
    SignalDispatcher,
    SignalKind,
    get_sentinel_policy,
)
from .strategy import (
    CompletionStrategy,
    PolledCompletion,
    SettleDelayCompletion,
    SignalCompletion,
    build_load_strategy,
    build_readiness_strategy,
)
from .timeout_governor import SignalWatch, TimeoutGovernor

__all__ = [
    "ConversionOrchestrator",
    "BudgetManager",
    "PhaseBudgetConfig",
    "ConversionJob",
    "ConversionReport",
    "ConversionResult",
    "ConversionStatus",
    # Phase outcomes
    "Phase",
    "PhaseOutcome",
    "Success",
    "TimedOut",
    "ChannelError",
    "ProcessError",
    # Signals
    "ProtocolSignal",
    "SignalKind",
    "SentinelMeaning",
    "SignalDispatcher",
    "get_sentinel_policy",
    # Strategies
    "CompletionStrategy",
    "SignalCompletion",
    "PolledCompletion",
    "SettleDelayCompletion",
    "build_readiness_strategy",
    "build_load_strategy",
    "TimeoutGovernor",
    "SignalWatch",
]
