"""
Task Processor

Produces the final answer for a task from the prompt, the user's context,
the selected agent's accumulated knowledge and the knowledge gathered for
this task.
"""

import json
import logging
from typing import List, Sequence

from ..common.analyst import LLMAnalyst
from ..common.schemas import KnowledgeEntry, KnowledgeItem, Task, TaskResult, UserContext
from .agents import Agent

logger = logging.getLogger("mindloom.orchestrator.processor")


TASK_PROMPT = """{prompt}
{caller_context}
Background knowledge gathered for this task:
{gathered}

What you already know from earlier work:
{known}

Use the background knowledge where it is relevant, say when it is uncertain, and answer the request directly."""


def build_system_prompt(context: UserContext, agent: Agent) -> str:
    system_prompt = (
        "You are an advanced AI assistant with autonomous learning capabilities. "
        "You are curious, thorough, and always seeking to expand knowledge."
    )
    system_prompt += (
        f" You are {agent.name}, whose personality is {agent.personality}"
        f" and who specializes in {', '.join(agent.specialization)}."
    )

    if context.interests:
        system_prompt += f" The user is interested in: {', '.join(context.interests)}."

    if context.has_history:
        system_prompt += " Consider the user's previous interactions and build upon that context."

    system_prompt += " Always provide comprehensive, accurate, and insightful responses."
    return system_prompt


def _format_gathered(items: Sequence[KnowledgeItem], limit: int = 1200) -> str:
    if not items:
        return "(none)"
    blocks = []
    for i, item in enumerate(items, 1):
        blocks.append(
            f"{i}. {item.topic} (confidence {item.confidence:.2f})\n{item.content[:limit]}"
        )
    return "\n\n".join(blocks)


def _format_known(entries: Sequence[KnowledgeEntry], limit: int = 400) -> str:
    if not entries:
        return "(none)"
    return "\n".join(f"- {e.item.topic}: {e.item.content[:limit]}" for e in entries)


class TaskProcessor:
    """Final text-generation step of the orchestration loop."""

    def __init__(self, analyst: LLMAnalyst):
        self._analyst = analyst

    async def process(
        self,
        task: Task,
        context: UserContext,
        agent: Agent,
        agent_knowledge: Sequence[KnowledgeEntry],
        gathered: List[KnowledgeItem],
    ) -> TaskResult:
        caller_context = ""
        if task.context:
            caller_context = f"\nAdditional context from the requester:\n{json.dumps(task.context, default=str)}\n"

        prompt = TASK_PROMPT.format(
            prompt=task.prompt,
            caller_context=caller_context,
            gathered=_format_gathered(gathered),
            known=_format_known(agent_knowledge),
        )

        logger.debug(
            "Generating answer for %s with %s (%d gathered, %d known)",
            task.id, agent.name, len(gathered), len(agent_knowledge),
        )
        content = await self._analyst.generate(prompt, system=build_system_prompt(context, agent))
        if not content or not content.strip():
            raise RuntimeError("Text generation returned an empty result")

        confidence = sum(i.confidence for i in gathered) / len(gathered) if gathered else 0.0
        return TaskResult(
            content=content,
            agent_id=agent.id,
            agent_name=agent.name,
            knowledge_topics=list(dict.fromkeys(i.topic for i in gathered)),
            knowledge_confidence=round(confidence, 2),
        )
