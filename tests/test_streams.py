from budget.streams import ValueStream


def test_subscriber_sees_latest_value_then_changes_in_order():
    stream = ValueStream(0)
    stream.emit(1)
    seen = []

    stream.subscribe(seen.append)
    stream.emit(2)
    stream.emit(3)

    assert seen == [1, 2, 3]
    assert stream.value == 3


def test_cancel_stops_delivery_and_is_idempotent():
    stream = ValueStream("a")
    seen = []

    subscription = stream.subscribe(seen.append)
    subscription.cancel()
    subscription.cancel()
    stream.emit("b")

    assert seen == ["a"]
    assert stream.subscriber_count == 0


def test_cancel_from_inside_callback():
    stream = ValueStream(None)
    seen = []
    holder = {}

    def once(value):
        seen.append(value)
        if value == "stop":
            holder["sub"].cancel()

    holder["sub"] = stream.subscribe(once)
    stream.emit("stop")
    stream.emit("after")

    assert seen == [None, "stop"]


def test_failing_subscriber_does_not_block_others(caplog):
    stream = ValueStream(0)
    seen = []

    def broken(value):
        if value:
            raise RuntimeError("boom")

    stream.subscribe(broken)
    stream.subscribe(seen.append)
    stream.emit(5)

    assert seen == [0, 5]
    assert "failed" in caplog.text
