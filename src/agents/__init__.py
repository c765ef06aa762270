"""LLM-backed agents"""

from .base import AgentConfig, AgentMetrics, AgentStatus, BaseAgent
from .extraction import ExtractionAgent

__all__ = [
    "AgentConfig",
    "AgentMetrics",
    "AgentStatus",
    "BaseAgent",
    "ExtractionAgent",
]
