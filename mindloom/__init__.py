"""
Mindloom

Task orchestration for a small pool of curious, specialized agents.

Philosophy:
- Every task is handled by exactly one agent, chosen by specialization
- Knowledge is gathered from several sources and synthesized before answering
- Agents keep what they learn and occasionally explore on their own
- Users see progress live on their own notification channel

Usage:
    from mindloom.common import load_config, LLMClient
    from mindloom.retriever import KnowledgeSeeker, KnowledgeSynthesizer
    from mindloom.orchestrator import Orchestrator, AgentPool
"""

__version__ = "0.1.0"
