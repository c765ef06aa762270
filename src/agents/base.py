"""Abstract base agent class with async LLM calls and call metrics."""

import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar, Union

from pydantic import BaseModel

from utils.llm import LLMClient, LLMError


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class AgentStatus(Enum):
    """Agent execution status."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class AgentMetrics:
    """Metrics for agent LLM usage."""
    total_llm_calls: int = 0
    total_llm_tokens: int = 0
    total_latency_ms: float = 0.0
    error_count: int = 0

    @property
    def avg_latency_ms(self) -> float:
        """Calculate average latency per LLM call."""
        if self.total_llm_calls > 0:
            return self.total_latency_ms / self.total_llm_calls
        return 0.0


@dataclass
class AgentConfig:
    """Configuration for agent behavior."""
    llm_temperature: float = 0.0
    llm_max_tokens: int = 2048
    llm_retry_count: int = 2
    enable_metrics: bool = True


class BaseAgent(ABC):
    """
    Abstract base class for LLM-backed agents.

    Provides:
    - Async LLM calls with retry logic (through ``LLMClient``)
    - Optional structured output parsing
    - Call metrics and logging
    """

    def __init__(
        self,
        agent_id: Optional[str] = None,
        llm_client: Optional[LLMClient] = None,
        config: Optional[AgentConfig] = None,
    ):
        self.agent_id = agent_id or f"{self.__class__.__name__}_{uuid.uuid4().hex[:8]}"
        self.llm_client = llm_client
        self.config = config or AgentConfig()

        self.status = AgentStatus.IDLE
        self.metrics = AgentMetrics() if self.config.enable_metrics else None
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    @abstractmethod
    def agent_type(self) -> str:
        """Return the type/name of this agent."""
        pass

    async def llm_call(
        self,
        prompt: str,
        response_format: Optional[Type[T]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Union[Any, T]:
        """
        Make a single LLM call.

        Args:
            prompt: The prompt to send to the LLM
            response_format: Optional Pydantic model for structured output
            temperature: Override default temperature
            max_tokens: Override default max tokens
            metadata: Additional metadata for the call

        Returns:
            Parsed response (if response_format provided) or raw response
        """
        if not self.llm_client:
            raise LLMError("No LLM client configured")

        start_time = time.time()
        self.status = AgentStatus.RUNNING

        try:
            result = await self.llm_client.call(
                prompt=prompt,
                response_format=response_format,
                temperature=self.config.llm_temperature if temperature is None else temperature,
                max_tokens=max_tokens or self.config.llm_max_tokens,
                retry_count=self.config.llm_retry_count,
                metadata={
                    "agent_id": self.agent_id,
                    "agent_type": self.agent_type,
                    **(metadata or {})
                }
            )
        except Exception as e:
            self.status = AgentStatus.FAILED
            if self.metrics:
                self.metrics.error_count += 1
            self.logger.error(f"LLM call failed: {e}", extra={
                "agent_id": self.agent_id,
                "prompt_length": len(prompt),
                "error_type": type(e).__name__
            })
            raise

        self.status = AgentStatus.COMPLETED
        if self.metrics:
            self.metrics.total_llm_calls += 1
            self.metrics.total_latency_ms += (time.time() - start_time) * 1000
            usage = getattr(result, "token_usage", None)
            if usage:
                self.metrics.total_llm_tokens += usage.get("input_tokens", 0) + usage.get("output_tokens", 0)

        return result

    def metrics_dict(self) -> Optional[Dict[str, Any]]:
        """Get metrics as a dictionary."""
        if not self.metrics:
            return None
        return {
            "total_llm_calls": self.metrics.total_llm_calls,
            "total_llm_tokens": self.metrics.total_llm_tokens,
            "total_latency_ms": self.metrics.total_latency_ms,
            "avg_latency_ms": self.metrics.avg_latency_ms,
            "error_count": self.metrics.error_count,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.agent_id}, status={self.status.value})"
