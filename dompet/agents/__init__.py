"""AI agents."""

from dompet.agents.insights import (
    InsightAgent,
    InsightGenerationFailure,
    InsightGeneratorInterface,
)

__all__ = ["InsightAgent", "InsightGenerationFailure", "InsightGeneratorInterface"]
