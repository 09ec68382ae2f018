"""
Mindloom Common Module

Shared infrastructure for the retriever and the orchestrator.
"""

from .config import MindloomConfig, load_config
from .llm_client import LLMClient
from .analyst import LLMAnalyst

__all__ = [
    "MindloomConfig",
    "load_config",
    "LLMClient",
    "LLMAnalyst",
]
