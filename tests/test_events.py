"""
Event bus tests.
"""

from activestore import DB_INIT_ERROR, MODEL_OP_ERROR, EventBus, dispatch
from activestore.events import (
    clear, event_bus, on_database_init_error, on_model_operation_error, subscribe, unsubscribe,
)


class TestEventBus:
    def test_dispatch_reaches_subscribers_in_order(self):
        bus = EventBus()
        calls = []
        bus.subscribe("topic", lambda context: calls.append(("first", context)))
        bus.subscribe("topic", lambda context: calls.append(("second", context)))

        bus.dispatch("topic", 42)

        assert calls == [("first", 42), ("second", 42)]

    def test_dispatch_without_subscribers_is_a_noop(self):
        EventBus().dispatch("nobody-listens", {"any": "thing"})

    def test_failing_handler_does_not_stop_others(self):
        bus = EventBus()
        calls = []

        def broken(context):
            raise RuntimeError("handler failed")

        bus.subscribe("topic", broken)
        bus.subscribe("topic", calls.append)

        bus.dispatch("topic", "payload")

        assert calls == ["payload"]

    def test_unsubscribe_removes_one_subscription(self):
        bus = EventBus()
        calls = []
        bus.subscribe("topic", calls.append)
        bus.subscribe("topic", calls.append)

        assert bus.unsubscribe("topic", calls.append) is True
        bus.dispatch("topic", "x")

        assert calls == ["x"]
        assert bus.subscriber_count("topic") == 1

    def test_unsubscribe_unknown_handler(self):
        assert EventBus().unsubscribe("topic", print) is False

    def test_clear(self):
        bus = EventBus()
        bus.subscribe("a", print)
        bus.subscribe("b", print)

        bus.clear("a")
        assert bus.subscriber_count("a") == 0
        assert bus.subscriber_count() == 1

        bus.clear()
        assert bus.subscriber_count() == 0


class TestDefaultBus:
    def test_database_init_error_callback(self):
        received = []
        on_database_init_error(received.append)

        dispatch(DB_INIT_ERROR, "boom")

        assert received == ["boom"]

    def test_model_operation_error_callback(self):
        received = []
        on_model_operation_error(received.append)

        dispatch(MODEL_OP_ERROR, "oops")

        assert received == ["oops"]

    def test_topics_are_isolated(self):
        received = []
        subscribe(MODEL_OP_ERROR, received.append)

        dispatch(DB_INIT_ERROR, "elsewhere")

        assert received == []

    def test_module_helpers_share_the_default_bus(self):
        handler = subscribe("custom", print)
        assert event_bus.subscriber_count("custom") == 1

        assert unsubscribe("custom", handler) is True
        clear()
        assert event_bus.subscriber_count() == 0
