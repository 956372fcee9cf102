"""
Tests for the thread registry.
"""

import json

from workbench.entities.ids import is_valid_id
from workbench.entities.models import DEFAULT_THREAD_TITLE, ChatMessage
from workbench.entities.threads import ThreadRegistry, branch_title


def make_message(message_id, role, content, created_at):
    return ChatMessage(id=message_id, role=role, content=content, created_at=created_at)


def seed_conversation(threads):
    thread_id = threads.create_thread()
    threads.append_message(thread_id, make_message("msg-a", "user", "A", 100))
    threads.append_message(thread_id, make_message("msg-b", "assistant", "B", 200))
    threads.append_message(thread_id, make_message("msg-c", "user", "C", 300))
    return thread_id


class TestDefaults:
    def test_starts_with_welcome_thread_active(self, threads):
        assert len(threads.threads) == 1
        assert threads.threads[0].title == "Welcome"
        assert threads.active_thread_id == threads.threads[0].id

    def test_reload_restores_persisted_state(self, threads, clock):
        thread_id = seed_conversation(threads)
        reloaded = ThreadRegistry(clock=clock)
        assert reloaded.active_thread_id == thread_id
        assert [m.content for m in reloaded.active_thread.messages] == ["A", "B", "C"]


class TestThreadOperations:
    def test_create_thread_prepends_and_activates(self, threads):
        thread_id = threads.create_thread()
        assert threads.threads[0].id == thread_id
        assert threads.threads[0].title == DEFAULT_THREAD_TITLE
        assert threads.threads[0].last_preset_id is None
        assert threads.active_thread_id == thread_id
        assert is_valid_id(thread_id)

    def test_rename_bumps_updated_at(self, threads, clock):
        thread_id = seed_conversation(threads)
        threads.rename_thread(thread_id, "Renamed")
        thread = threads.get_thread(thread_id)
        assert thread.title == "Renamed"
        assert thread.updated_at == clock.now

    def test_set_thread_preset(self, threads, clock):
        thread_id = threads.create_thread()
        threads.set_thread_preset(thread_id, "preset-abcdefgh")
        thread = threads.get_thread(thread_id)
        assert thread.last_preset_id == "preset-abcdefgh"
        assert thread.updated_at == clock.now

    def test_remove_active_thread_moves_selection_to_first(self, threads):
        first = threads.create_thread()
        second = threads.create_thread()
        assert threads.active_thread_id == second

        assert threads.remove_thread(second) == first
        assert threads.active_thread_id == first

    def test_remove_inactive_thread_keeps_selection(self, threads):
        first = threads.create_thread()
        second = threads.create_thread()
        assert threads.remove_thread(first) == second

    def test_remove_last_thread_clears_selection(self, threads):
        for thread in list(threads.threads):
            threads.remove_thread(thread.id)
        assert threads.threads == []
        assert threads.active_thread_id is None

    def test_dangling_active_id_heals_on_load(self, storage, clock):
        local, session = storage
        local.set_item("orw-chats", json.dumps([
            {"id": "chat-aaaaaaaa", "title": "Kept", "updated_at": 1, "messages": []},
        ]))
        session.set_item("orw-active-chat", json.dumps("chat-gone0000"))

        registry = ThreadRegistry(clock=clock)
        assert registry.active_thread_id == "chat-aaaaaaaa"
        assert json.loads(session.get_item("orw-active-chat")) == "chat-aaaaaaaa"

    def test_clear_all_returns_fresh_defaults(self, threads):
        welcome_id = threads.threads[0].id
        seed_conversation(threads)

        fresh, active = threads.clear_all()
        assert [t.id for t in fresh] == [welcome_id]
        assert active == welcome_id
        assert threads.threads is fresh

    def test_subscribers_are_notified(self, threads):
        calls = []
        unsubscribe = threads.subscribe(lambda: calls.append(len(threads.threads)))
        threads.create_thread()
        assert calls and calls[-1] == 2

        unsubscribe()
        calls.clear()
        threads.create_thread()
        assert calls == []


class TestMessageOperations:
    def test_append_sets_updated_at_to_message_time(self, threads):
        thread_id = seed_conversation(threads)
        assert threads.get_thread(thread_id).updated_at == 300

    def test_collection_is_replaced_not_mutated(self, threads):
        thread_id = threads.create_thread()
        before = threads.threads
        before_thread = threads.get_thread(thread_id)

        threads.append_message(thread_id, make_message("msg-a", "user", "A", 100))

        assert threads.threads is not before
        assert before_thread.messages == []

    def test_patch_merges_and_uses_patched_created_at(self, threads):
        thread_id = seed_conversation(threads)
        patched = threads.patch_message(thread_id, "msg-b", content="B2", status="error", created_at=999)

        assert patched.content == "B2"
        assert patched.status == "error"
        thread = threads.get_thread(thread_id)
        assert thread.updated_at == 999
        assert [m.id for m in thread.messages] == ["msg-a", "msg-b", "msg-c"]

    def test_patch_without_created_at_bumps_to_now(self, threads, clock):
        thread_id = seed_conversation(threads)
        threads.patch_message(thread_id, "msg-b", content="B2")
        assert threads.get_thread(thread_id).updated_at == clock.now

    def test_patch_cannot_change_identity(self, threads):
        thread_id = seed_conversation(threads)
        threads.patch_message(thread_id, "msg-b", id="msg-zzzzzzzz", content="B2")
        assert threads.get_message(thread_id, "msg-b").content == "B2"

    def test_patch_missing_message_is_a_noop(self, threads):
        thread_id = seed_conversation(threads)
        before = threads.get_thread(thread_id)
        collection = threads.threads

        assert threads.patch_message(thread_id, "msg-missing", content="x", created_at=5) is None

        assert threads.get_thread(thread_id) is before
        assert threads.threads is collection
        assert threads.get_thread(thread_id).updated_at == 300

    def test_remove_message_tracks_last_remaining(self, threads):
        thread_id = seed_conversation(threads)
        threads.remove_message(thread_id, "msg-c")
        assert threads.get_thread(thread_id).updated_at == 200

    def test_removing_all_messages_bumps_to_now(self, threads, clock):
        thread_id = seed_conversation(threads)
        for message_id in ("msg-a", "msg-b", "msg-c"):
            threads.remove_message(thread_id, message_id)
        thread = threads.get_thread(thread_id)
        assert thread.messages == []
        assert thread.updated_at == clock.now

    def test_remove_missing_message_is_a_noop(self, threads):
        thread_id = seed_conversation(threads)
        before = threads.get_thread(thread_id)
        threads.remove_message(thread_id, "msg-missing")
        assert threads.get_thread(thread_id) is before

    def test_updated_at_follows_mixed_sequence(self, threads, clock):
        thread_id = threads.create_thread()
        threads.append_message(thread_id, make_message("msg-1", "user", "one", 10))
        threads.append_message(thread_id, make_message("msg-2", "assistant", "two", 20))
        threads.patch_message(thread_id, "msg-2", content="two!", created_at=30)
        assert threads.get_thread(thread_id).updated_at == 30
        threads.remove_message(thread_id, "msg-2")
        assert threads.get_thread(thread_id).updated_at == 10
        threads.remove_message(thread_id, "msg-1")
        assert threads.get_thread(thread_id).updated_at == clock.now


class TestCloning:
    def test_clone_copies_prefix_with_new_ids(self, threads):
        thread_id = seed_conversation(threads)
        threads.set_thread_preset(thread_id, "preset-abcdefgh")

        clone_id = threads.clone_up_to(thread_id, "msg-b")

        clone = threads.get_thread(clone_id)
        source = threads.get_thread(thread_id)
        assert [(m.role, m.content) for m in clone.messages] == [("user", "A"), ("assistant", "B")]
        assert not {m.id for m in clone.messages} & {m.id for m in source.messages}
        assert clone.updated_at == 200
        assert clone.last_preset_id == "preset-abcdefgh"
        assert threads.active_thread_id == clone_id
        assert threads.threads[0].id == clone_id

    def test_clone_without_message_copies_whole_thread(self, threads):
        thread_id = seed_conversation(threads)
        clone = threads.get_thread(threads.clone_up_to(thread_id, None))
        assert [m.content for m in clone.messages] == ["A", "B", "C"]

    def test_clone_with_unknown_message_copies_whole_thread(self, threads):
        thread_id = seed_conversation(threads)
        clone = threads.get_thread(threads.clone_up_to(thread_id, "msg-missing"))
        assert [m.content for m in clone.messages] == ["A", "B", "C"]

    def test_branch_suffix_is_not_stacked(self, threads):
        thread_id = seed_conversation(threads)
        threads.rename_thread(thread_id, "X")
        first = threads.clone_up_to(thread_id, None)
        second = threads.clone_up_to(first, None)
        assert threads.get_thread(first).title == "X (branch)"
        assert threads.get_thread(second).title == "X (branch)"

    def test_clone_of_empty_thread_uses_now(self, threads, clock):
        thread_id = threads.create_thread()
        clone = threads.get_thread(threads.clone_up_to(thread_id, None))
        assert clone.messages == []
        assert clone.updated_at == clock.now

    def test_clone_of_unknown_thread_returns_none(self, threads):
        before = threads.threads
        assert threads.clone_up_to("chat-missing0", None) is None
        assert threads.threads is before

    def test_branch_title_of_blank_title(self):
        assert branch_title("") == "Untitled chat (branch)"
