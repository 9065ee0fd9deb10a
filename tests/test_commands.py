# tests/test_commands.py

from __future__ import annotations

from pathlib import Path

from skill_arena.cli.commands import CommandRegistry, registry
from skill_arena.tasks.task_forge import LLMTaskForge

CODE = """def total(items):
    result = 0
    for item in items:
        result += item.price * item.qty
    return result
"""


def test_command_registry_routes_3_and_4_params(state) -> None:
    reg = CommandRegistry()
    called = {"h3": 0, "h4": 0}
    notes: list[str] = []

    def h3(state, args, user_id):
        called["h3"] += 1
        return "h3"

    def h4(state, args, user_id, emit):
        called["h4"] += 1
        if emit is not None:
            emit("note")
        return "h4"

    reg.register("a", h3, "a")
    reg.register("b", h4, "b", aliases=["bee"])

    assert reg.handle(state, "/a x", user_id="u") == "h3"
    assert reg.handle(state, "/BEE y", user_id="u", emit=notes.append) == "h4"
    assert called == {"h3": 1, "h4": 1}
    assert notes == ["note"]


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_domain_errors_become_replies(state) -> None:
    reply = registry.handle(state, "/tasks frontend")
    assert reply.startswith("Error: ")
    assert "frontend" in reply


def test_help_lists_commands(state) -> None:
    reply = registry.handle(state, "/help")
    for name in ("/sweep", "/score", "/fairness", "/check", "/submit", "/integrity"):
        assert name in reply


def test_seed_then_list_tasks(state) -> None:
    assert "Created 8 task(s)" in registry.handle(state, "/seed")
    assert state.task_store.count_tasks(active_only=True) == 8

    assert "Created 1 task(s)" in registry.handle(state, "/seed ai-ml practice")
    listing = registry.handle(state, "/tasks ai-ml")
    assert listing.startswith("Active tasks:")
    assert len(listing.splitlines()) == 1 + 3


def test_tasks_on_empty_pool(state) -> None:
    assert "No active tasks" in registry.handle(state, "/tasks")


def test_sweep_with_fresh_pool_rotates_nothing(state) -> None:
    registry.handle(state, "/seed cloud-devops")
    notes: list[str] = []

    reply = registry.handle(state, "/sweep", emit=notes.append)

    assert reply.startswith("Sweep: checked=2 rotated=0 replacements=0 remaining=2")
    assert notes


def test_stats_and_status(state) -> None:
    registry.handle(state, "/seed data-analytics")
    assert "total=2 active=2 rotated=0" in registry.handle(state, "/stats")

    status = registry.handle(state, "/status")
    assert "Tasks: 2 active / 2 total" in status
    assert "Scheduler: off" in status
    assert "Corpus: 0 submission(s)" in status


def test_score_command(state) -> None:
    assert "points=169.00" in registry.handle(state, "/score cloud-devops 100")
    assert "Usage" in registry.handle(state, "/score cloud-devops")
    assert "must be a number" in registry.handle(state, "/score cloud-devops lots")
    assert registry.handle(state, "/score cloud-devops 101").startswith("Error: ")


def test_fairness_command(state) -> None:
    reply = registry.handle(state, "/fairness 80")
    assert "UNFAIR" in reply
    assert "cloud-devops" in reply


def test_check_against_empty_corpus(state, tmp_path: Path) -> None:
    path = tmp_path / "solution.py"
    path.write_text(CODE, "utf-8")

    reply = registry.handle(state, f"/check {path} python fullstack-dev", user_id="u1")
    assert reply.startswith("Similarity 0.000 (low risk)")
    assert "Cannot read" in registry.handle(state, f"/check {tmp_path / 'nope.py'} python t1")


def test_submit_accepts_then_flags_a_copy(state, tmp_path: Path) -> None:
    registry.handle(state, "/seed fullstack-dev practice")
    (task,) = state.task_store.load(active_only=True)
    path = tmp_path / "solution.py"
    path.write_text(CODE, "utf-8")

    first = registry.handle(state, f"/submit {task.id} {path} python 80", user_id="alice")
    assert ": accepted, points=" in first
    assert state.task_store.get_task(task.id).completion_count == 1

    second = registry.handle(state, f"/submit {task.id} {path} python 80", user_id="bob")
    assert ": flagged, points=0.00" in second
    assert "high risk" in second
    assert state.corpus.count() == 2

    check = registry.handle(state, f"/check {path} python {task.id}", user_id="carol")
    assert "(high risk)" in check
    assert "highlighted lines: 1, 2, 3, 4, 5" in check


def test_submit_to_unknown_task(state, tmp_path: Path) -> None:
    assert "Unknown task" in registry.handle(state, f"/submit missing {tmp_path / 'x.py'} python 80")
    assert "Usage" in registry.handle(state, "/submit missing")


class _UnconfiguredLLM:
    def stream_chat(self, messages, system_prompt):
        raise RuntimeError("LLM API key is not set. Put ARENA_OPENROUTER_API_KEY in .env")


def test_seed_reports_llm_failure_in_plain_words(state) -> None:
    state.forge = LLMTaskForge(_UnconfiguredLLM())

    reply = registry.handle(state, "/seed ai-ml practice")

    assert reply.startswith("Task forge failed: ")
    assert "missing API key" in reply
    assert state.task_store.count_tasks() == 0


def test_integrity_stats_after_a_copied_submission(state, tmp_path: Path) -> None:
    registry.handle(state, "/seed fullstack-dev practice")
    (task,) = state.task_store.load(active_only=True)
    path = tmp_path / "solution.py"
    path.write_text(CODE, "utf-8")
    registry.handle(state, f"/submit {task.id} {path} python 80", user_id="alice")
    registry.handle(state, f"/submit {task.id} {path} python 80", user_id="bob")

    bob = registry.handle(state, "/integrity", user_id="bob")
    assert bob.startswith("Integrity stats for bob: checks=1 ")
    assert bob.endswith("flagged=1")

    alice = registry.handle(state, "/integrity alice", user_id="bob")
    assert alice == "Integrity stats for alice: checks=1 average_similarity=0.000 flagged=0"
    assert "checks=0" in registry.handle(state, "/integrity nobody")
