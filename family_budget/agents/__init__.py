"""AI agents package."""

from family_budget.agents.ai_agents import (
    InsightAgent,
    ReceiptAgent,
    ReceiptParsingError,
)

__all__ = ["InsightAgent", "ReceiptAgent", "ReceiptParsingError"]
