"""
Pustaka LLM Module

LLM integration components:
- GeminiClient: Async HTTP client for Gemini generation and SSE streaming
- SSELineBuffer: Reassembles SSE lines across transport reads
- Prompt templates: Library-assistant system prompt
"""

from src.llm.gemini_client import GeminiClient, SSELineBuffer, extract_text, parse_sse_line
from src.llm.prompt_templates import build_system_prompt, build_user_turn

__all__ = [
    "GeminiClient",
    "SSELineBuffer",
    "build_system_prompt",
    "build_user_turn",
    "extract_text",
    "parse_sse_line",
]
