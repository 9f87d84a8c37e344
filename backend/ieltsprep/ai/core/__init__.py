# AI Core Module - LLM access and tracing shared by the graders

from ieltsprep.ai.core.llm import LLMClient, LLMResponse, get_llm_client
from ieltsprep.ai.core.telemetry import get_tracer, init_telemetry, stage_span

__all__ = [
    # LLM
    "LLMClient", "LLMResponse", "get_llm_client",
    # Telemetry
    "get_tracer", "init_telemetry", "stage_span",
]
