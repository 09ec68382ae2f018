"""
Tests for the Agent Pool and Selector

Scoring, tie-breaks, atomic claiming and knowledge merging.
"""

import threading

import pytest

from mindloom.common.schemas import AgentStatus, KnowledgeItem, Task
from mindloom.orchestrator.agents import (
    AGENT_PROFILES,
    AgentPool,
    AgentProfile,
    AgentSelector,
    Personality,
    count_specialization_matches,
    score_agent,
)


def make_task(prompt, task_id="task-1"):
    return Task(id=task_id, user_id="u1", prompt=prompt)


def profile(name, curiosity=0.5, learning=0.5, specialization=("research",)):
    return AgentProfile(
        name=name,
        personality=Personality(("steady",)),
        specialization=tuple(specialization),
        curiosity_level=curiosity,
        learning_rate=learning,
    )


class TestAgentPool:
    def test_default_pool_has_four_idle_agents(self):
        pool = AgentPool()

        assert len(pool) == 4
        assert pool.ids() == ["agent-aria", "agent-zephyr", "agent-sage", "agent-nova"]
        assert all(a.is_idle for a in pool.idle_agents())

    def test_agent_table_values(self):
        by_name = {p.name: p for p in AGENT_PROFILES}

        assert by_name["Zephyr"].curiosity_level == 0.95
        assert by_name["Sage"].learning_rate == 0.9
        assert "research" in by_name["Aria"].specialization
        assert str(by_name["Nova"].personality) == "energetic, quick, adaptive"

    def test_try_acquire_is_compare_and_set(self):
        pool = AgentPool()

        assert pool.try_acquire("agent-aria", "task-1") is True
        assert pool.try_acquire("agent-aria", "task-2") is False
        assert pool.get("agent-aria").current_task == "task-1"

    def test_release_returns_to_idle(self):
        pool = AgentPool()
        pool.try_acquire("agent-sage", "task-1")

        pool.release("agent-sage")

        agent = pool.get("agent-sage")
        assert agent.status == AgentStatus.IDLE
        assert agent.current_task is None

    def test_learning_returns_to_busy_while_holding_task(self):
        pool = AgentPool()
        pool.try_acquire("agent-nova", "task-1")

        pool.begin_learning("agent-nova")
        assert pool.get("agent-nova").status == AgentStatus.LEARNING

        pool.end_learning("agent-nova")
        assert pool.get("agent-nova").status == AgentStatus.BUSY

    def test_learning_agent_is_not_selectable(self):
        pool = AgentPool([profile("Solo")])
        pool.begin_learning("agent-solo")

        assert AgentSelector(pool).select_agent(make_task("anything")) is None

    def test_snapshot_is_idempotent(self):
        pool = AgentPool()
        pool.try_acquire("agent-zephyr", "task-9")

        first = pool.snapshot()
        second = pool.snapshot()

        assert first == second
        assert first[1]["status"] == "busy"
        assert set(first[0]) == {
            "id", "name", "status", "specialization", "knowledgeBaseSize", "curiosityLevel",
        }

    def test_snapshot_is_a_copy(self):
        pool = AgentPool()
        snap = pool.snapshot()
        snap[0]["specialization"].append("tampered")

        assert "tampered" not in pool.get("agent-aria").specialization

    def test_reads_do_not_expose_live_agents(self):
        pool = AgentPool()

        pool.get("agent-aria").status = AgentStatus.BUSY
        idle = pool.idle_agents()
        idle[0].knowledge_base["leak"] = None

        assert pool.get("agent-aria").is_idle
        assert "leak" not in pool.get(idle[0].id).knowledge_base


class TestKnowledgeMerge:
    def test_merge_keys_by_topic_and_keeps_confidence(self):
        pool = AgentPool()
        items = [
            KnowledgeItem(query="What is X?", topic="X", content="x", confidence=0.95),
            KnowledgeItem(query="What is Y?", topic="Y", content="y", confidence=0.6),
        ]

        assert pool.merge_knowledge("agent-aria", items) == 2

        kb = pool.get("agent-aria").knowledge_base
        assert set(kb) == {"X", "Y"}
        assert kb["X"].confidence == 0.95
        assert kb["Y"].confidence == 0.6

    def test_zero_confidence_gets_default(self):
        pool = AgentPool()
        item = KnowledgeItem(query="q", topic="T", content="c", confidence=0.0)

        pool.merge_knowledge("agent-aria", [item])

        assert pool.get("agent-aria").knowledge_base["T"].confidence == 0.8

    def test_same_topic_overwrites(self):
        pool = AgentPool()
        pool.merge_knowledge("agent-aria", [KnowledgeItem(query="a", topic="T", content="old")])
        pool.merge_knowledge("agent-aria", [KnowledgeItem(query="b", topic="T", content="new")])

        kb = pool.get("agent-aria").knowledge_base
        assert len(kb) == 1
        assert kb["T"].item.content == "new"

    def test_recent_knowledge_is_newest_first_and_limited(self):
        pool = AgentPool()
        for i in range(4):
            pool.merge_knowledge("agent-aria", [KnowledgeItem(query=f"q{i}", topic=f"t{i}", content="c")])

        recent = pool.recent_knowledge("agent-aria", limit=2)

        assert [e.item.topic for e in recent] == ["t3", "t2"]


class TestScoring:
    def test_score_formula(self):
        agent = AgentPool().get("agent-aria")
        # curiosity 0.9, learning 0.8, "research" matches the token "research"
        assert score_agent(agent, "research topic") == pytest.approx(0.9 * 0.3 + 0.8 * 0.2 + 0.5)

    def test_token_is_substring_of_tag(self):
        agent = AgentPool().get("agent-aria")
        # "data" is contained in "data-mining"
        assert count_specialization_matches(agent, "Data pipelines") == 1

    def test_empty_prompt_matches_nothing(self):
        agent = AgentPool().get("agent-aria")
        assert count_specialization_matches(agent, "   ") == 0

    def test_specialization_match_wins(self):
        pool = AgentPool()
        selector = AgentSelector(pool)

        chosen = selector.select_agent(make_task("Help with brainstorming and ideation"))

        assert chosen.name == "Zephyr"

    def test_no_match_prefers_highest_base_score(self):
        # Base scores: Aria 0.43, Zephyr ~0.425, Nova ~0.425, Sage 0.42
        ranked = AgentSelector(AgentPool()).rank(make_task("zzz"))
        assert ranked[0][0].name == "Aria"
        assert ranked[-1][0].name == "Sage"

    def test_ties_go_to_configuration_order(self):
        pool = AgentPool([profile("First"), profile("Second"), profile("Third")])

        chosen = AgentSelector(pool).select_agent(make_task("unrelated words"))

        assert chosen.name == "First"

    def test_ranking_is_deterministic(self):
        selector = AgentSelector(AgentPool())
        task = make_task("explain research data")

        first = [(a.id, s) for a, s in selector.rank(task)]
        second = [(a.id, s) for a, s in selector.rank(task)]

        assert first == second

    def test_select_marks_agent_busy_with_task(self):
        pool = AgentPool()
        agent = AgentSelector(pool).select_agent(make_task("research", task_id="task-42"))

        assert pool.get(agent.id).status == AgentStatus.BUSY
        assert pool.get(agent.id).current_task == "task-42"

    def test_no_idle_agent_returns_none(self):
        pool = AgentPool()
        for agent_id in pool.ids():
            pool.force_status(agent_id, AgentStatus.BUSY, task_id="other")

        assert AgentSelector(pool).select_agent(make_task("research")) is None


class TestConcurrentSelection:
    def test_no_double_assignment(self):
        pool = AgentPool()
        selector = AgentSelector(pool)
        barrier = threading.Barrier(12)
        claimed = []
        lock = threading.Lock()

        def worker(i):
            barrier.wait()
            agent = selector.select_agent(make_task("research analysis", task_id=f"task-{i}"))
            if agent is not None:
                with lock:
                    claimed.append((agent.id, f"task-{i}"))

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(12)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        agent_ids = [agent_id for agent_id, _ in claimed]
        assert len(claimed) == 4
        assert len(set(agent_ids)) == 4
        busy_tasks = [a["id"] for a in pool.snapshot() if a["status"] == "busy"]
        assert len(busy_tasks) == 4
        assert len({pool.get(i).current_task for i in agent_ids}) == 4
