"""
Pipeline state for one Query Builder run.

A fresh PipelineState is created per `run` call, so concurrent requests
never share accumulated SQL or stage bookkeeping.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .base_enums import PipelineStage


@dataclass
class PipelineState:
    """
    Mutable state passed through the pipeline steps.

    Tracks the current stage and every intermediate product as the
    prompt flows through schema lookup, generation, validation and execution.
    """

    # Input
    prompt: str

    stage: PipelineStage = PipelineStage.START

    # Schema lookup
    relevant_tables: List[str] = field(default_factory=list)
    schema_description: Optional[str] = None

    # Prompt compilation
    system_prompt: Optional[str] = None
    user_prompt: Optional[str] = None

    # Generation: fragments in arrival order
    fragments: List[str] = field(default_factory=list)

    # Validation and execution
    validated_sql: Optional[str] = None
    rows: Optional[List[Dict[str, Any]]] = None

    # Error tracking
    error_stage: Optional[PipelineStage] = None

    @property
    def generated_sql(self) -> str:
        """Raw candidate SQL: the fragments concatenated in arrival order."""
        return "".join(self.fragments)

    def advance(self, stage: PipelineStage) -> None:
        self.stage = stage

    def fail(self) -> None:
        self.error_stage = self.stage
        self.stage = PipelineStage.ERRORED
