"""
Trace sinks for policy evaluation.

Evaluators report each rule stage to a sink. The default sink discards
everything, so an evaluation has no side effects unless a caller opts in.
"""

from typing import Any, Dict, List, Protocol, Tuple

from shared.logging import get_logger


class TraceSink(Protocol):
    """Receives evaluation stages."""

    def record(self, stage: str, **fields: Any) -> None:
        ...


class NullTraceSink:
    """Discards all stages."""

    def record(self, stage: str, **fields: Any) -> None:
        return None


class LoggingTraceSink:
    """Forwards stages to the structured logger at debug level."""

    def __init__(self, logger_name: str = "policy.trace"):
        self.logger = get_logger(logger_name)

    def record(self, stage: str, **fields: Any) -> None:
        self.logger.debug("Policy evaluation stage", stage=stage, **fields)


class RecordingTraceSink:
    """Keeps stages in memory, in the order they were reported."""

    def __init__(self):
        self.stages: List[Tuple[str, Dict[str, Any]]] = []

    def record(self, stage: str, **fields: Any) -> None:
        self.stages.append((stage, dict(fields)))

    def stage_names(self) -> List[str]:
        return [stage for stage, _ in self.stages]
