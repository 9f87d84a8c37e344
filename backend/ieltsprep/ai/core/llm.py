"""
IELTS Prep - Unified LLM Client
Centralized chat-model access for the graders, with telemetry.
"""
from dataclasses import dataclass
from typing import Any, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from ieltsprep.ai.core.telemetry import get_tracer, trace_llm_call
from ieltsprep.core.config import settings


@dataclass
class LLMResponse:
    """Standardized response from LLM client."""
    content: str
    model: str
    tokens_prompt: int = 0
    tokens_completion: int = 0
    tokens_total: int = 0
    raw_response: Any = None


class LLMClient:
    """
    Unified LLM Client for the grading services.

    Features:
    - Multi-provider support (OpenAI, Anthropic) through LangChain chat models
    - Built-in telemetry (OpenTelemetry)
    - Token usage tracking
    """

    def __init__(
        self,
        provider: str = None,
        model: str = None,
        temperature: float = 0.3,
        timeout: int = None,
        max_tokens: int = None,
    ):
        """
        Initialize the LLM client.

        Args:
            provider: LLM provider ('openai' or 'anthropic'). Defaults to settings.
            model: Model name. Defaults to settings.
            temperature: Sampling temperature. Low for consistent grading.
            timeout: Request timeout in seconds.
            max_tokens: Completion budget.
        """
        self.provider = provider or settings.LLM_PROVIDER
        self.model = model or (
            settings.OPENAI_MODEL if self.provider == "openai"
            else settings.ANTHROPIC_MODEL
        )
        self.temperature = temperature
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS

        self._llm = None

    @property
    def is_configured(self) -> bool:
        """Whether an API key exists for the selected provider."""
        if self.provider == "openai":
            return bool(settings.OPENAI_API_KEY)
        return bool(settings.ANTHROPIC_API_KEY)

    @property
    def llm(self):
        """Lazy-load the LLM instance."""
        if self._llm is None:
            if self.provider == "openai":
                from langchain_openai import ChatOpenAI
                self._llm = ChatOpenAI(
                    model=self.model,
                    api_key=settings.OPENAI_API_KEY,
                    temperature=self.temperature,
                    timeout=self.timeout,
                    max_tokens=self.max_tokens,
                )
            else:
                from langchain_anthropic import ChatAnthropic
                self._llm = ChatAnthropic(
                    model=self.model,
                    api_key=settings.ANTHROPIC_API_KEY,
                    temperature=self.temperature,
                    timeout=self.timeout,
                    max_tokens=self.max_tokens,
                )
        return self._llm

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        agent_name: str = "LLMClient",
    ) -> LLMResponse:
        """
        Generate a response from the LLM.

        Args:
            prompt: The user prompt.
            system_prompt: Optional system prompt.
            agent_name: Name of the calling component (for telemetry).

        Returns:
            LLMResponse with content and metadata.
        """
        tracer = get_tracer()

        with tracer.start_as_current_span("llm.generate") as span:
            span.set_attribute("llm.model", self.model)
            span.set_attribute("llm.provider", self.provider)
            span.set_attribute("agent.name", agent_name)

            messages = []
            if system_prompt:
                messages.append(SystemMessage(content=system_prompt))
            messages.append(HumanMessage(content=prompt))

            span.set_attribute("llm.prompt_length", len(prompt))

            response = await self.llm.ainvoke(messages)
            content = response.content
            if isinstance(content, list):
                # Anthropic may return content blocks
                content = "".join(
                    block.get("text", "") if isinstance(block, dict) else str(block)
                    for block in content
                )

            tokens_prompt = 0
            tokens_completion = 0
            usage = getattr(response, "usage_metadata", None)
            if usage:
                tokens_prompt = usage.get("input_tokens", 0)
                tokens_completion = usage.get("output_tokens", 0)
            elif hasattr(response, "response_metadata"):
                usage = response.response_metadata.get("token_usage", {})
                tokens_prompt = usage.get("prompt_tokens", 0)
                tokens_completion = usage.get("completion_tokens", 0)

            tokens_total = tokens_prompt + tokens_completion

            trace_llm_call(
                model=self.model,
                prompt_tokens=tokens_prompt,
                completion_tokens=tokens_completion,
                total_tokens=tokens_total,
            )
            span.set_attribute("llm.response_length", len(content))

            return LLMResponse(
                content=content,
                model=self.model,
                tokens_prompt=tokens_prompt,
                tokens_completion=tokens_completion,
                tokens_total=tokens_total,
                raw_response=response,
            )


# Default client instance
_default_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get the default LLM client instance."""
    global _default_client
    if _default_client is None:
        _default_client = LLMClient()
    return _default_client
