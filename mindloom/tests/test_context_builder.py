"""Tests for per-user context building and updates."""

from mindloom.common.schemas import Task, UserContext
from mindloom.orchestrator.context_builder import ContextBuilder
from mindloom.orchestrator.store import ContextStore, TaskStore


class TestBuildContext:
    def test_new_user_gets_empty_context(self):
        builder = ContextBuilder(ContextStore())

        ctx = builder.build_context("new-user", "hello")

        assert ctx.user_id == "new-user"
        assert ctx.interests == []
        assert ctx.interaction_count == 0
        assert not ctx.has_history

    def test_stored_context_is_returned(self):
        store = ContextStore()
        store.put(UserContext(user_id="u1", interests=["ai"], interaction_count=3))

        ctx = ContextBuilder(store).build_context("u1", "hello")

        assert ctx.interests == ["ai"]
        assert ctx.has_history

    def test_recent_prompts_attached_without_current_prompt(self):
        tasks = TaskStore()
        tasks.create(Task(id="t1", user_id="u1", prompt="first question"))
        tasks.create(Task(id="t2", user_id="u1", prompt="current question"))
        builder = ContextBuilder(ContextStore(), tasks)

        ctx = builder.build_context("u1", "current question")

        assert ctx.context_data["recent_prompts"] == ["first question"]

    def test_recent_prompts_not_persisted(self):
        store = ContextStore()
        tasks = TaskStore()
        tasks.create(Task(id="t1", user_id="u1", prompt="earlier"))
        builder = ContextBuilder(store, tasks)

        builder.build_context("u1", "now")
        builder.update_user_context("u1", ["ai"])

        assert "recent_prompts" not in store.get("u1").context_data


class TestUpdateUserContext:
    def test_interests_are_unioned(self):
        store = ContextStore()
        builder = ContextBuilder(store)

        builder.update_user_context("u1", ["physics", "math"])
        updated = builder.update_user_context("u1", ["math", "biology", " "])

        assert updated.interests == ["physics", "math", "biology"]
        assert store.get("u1").interests == ["physics", "math", "biology"]

    def test_interaction_count_never_decreases(self):
        builder = ContextBuilder(ContextStore())
        counts = [builder.update_user_context("u1", []).interaction_count for _ in range(3)]

        assert counts == [1, 2, 3]

    def test_last_interaction_set(self):
        builder = ContextBuilder(ContextStore())

        updated = builder.update_user_context("u1", ["x"])

        assert updated.last_interaction is not None
