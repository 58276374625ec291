from argo_bridge.models import HistoryPage
from argo_bridge.results import FailureKind, Result
from argo_bridge.threads import ThreadLocator


class StubHistory:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def conversations_history(self, channel_id, limit=10):
        self.calls.append((channel_id, limit))
        return self.result


def page(*messages, ok=True):
    return Result.of(HistoryPage.model_validate({"ok": ok, "messages": list(messages)}))


def test_empty_arguments_make_no_calls(log) -> None:
    history = StubHistory(page())
    locator = ThreadLocator(history, "OURS", logger=log)

    assert locator.find_thread("", "foo") is None
    assert locator.find_thread("C1", "") is None
    assert history.calls == []


def test_only_this_apps_messages_match(log) -> None:
    history = StubHistory(page(
        {"app_id": "X", "text": "foo", "ts": "2"},
        {"app_id": "OURS", "text": "foo bar", "ts": "1", "thread_ts": "1"},
    ))
    locator = ThreadLocator(history, "OURS", logger=log)

    message = locator.find_thread("C1", "foo", limit=25)

    assert message.ts == "1"
    assert message.is_thread_root
    assert history.calls == [("C1", 25)]


def test_most_recent_match_wins(log) -> None:
    history = StubHistory(page(
        {"app_id": "OURS", "text": "svc abc123 rolled back", "ts": "3"},
        {"app_id": "OURS", "text": "svc abc123 deployed", "ts": "2"},
    ))

    message = ThreadLocator(history, "OURS", logger=log).find_thread("C1", "abc123")

    assert message.ts == "3"
    assert message.thread_root_ts == "3"


def test_no_match_returns_none(log) -> None:
    history = StubHistory(page({"app_id": "OURS", "text": "something else", "ts": "1"}))

    assert ThreadLocator(history, "OURS", logger=log).find_thread("C1", "abc123") is None


def test_failed_history_returns_none(logs) -> None:
    history = StubHistory(Result.fail(FailureKind.TRANSPORT, "timed out"))

    assert ThreadLocator(history, "OURS", logger=logs.logger).find_thread("C1", "abc123") is None
    assert logs.messages("ERROR")


def test_not_ok_page_returns_none(log) -> None:
    history = StubHistory(page({"app_id": "OURS", "text": "abc123", "ts": "1"}, ok=False))

    assert ThreadLocator(history, "OURS", logger=log).find_thread("C1", "abc123") is None


def test_empty_history_returns_none(logs) -> None:
    history = StubHistory(page())

    assert ThreadLocator(history, "OURS", logger=logs.logger).find_thread("C1", "abc123") is None
    assert any("returned no messages" in m for m in logs.messages("INFO"))
