from cluster_catalog.manager.notifier import ChangeNotifier
from cluster_catalog.sources.models import SourceSchema


def test_notify_calls_every_listener_in_order(recorder):
    # Arrange
    second = []
    notifier = ChangeNotifier([recorder])
    notifier.subscribe(lambda name, schema: second.append(name))
    schema = SourceSchema(source="orders", engine="mysql")

    # Act
    delivered = notifier.notify("orders", schema)

    # Assert
    assert delivered == 2
    assert recorder.calls == [("orders", schema)]
    assert second == ["orders"]


def test_raising_listener_is_swallowed_and_others_still_run(recorder, caplog):
    # Validates delivery isolation because one bad listener must not starve the others.
    # Arrange
    def broken(name, schema):
        raise RuntimeError("boom")

    notifier = ChangeNotifier([broken, recorder])

    # Act
    delivered = notifier.notify("orders", None)

    # Assert
    assert delivered == 1
    assert recorder.calls == [("orders", None)]
    assert "boom" in caplog.text


def test_unsubscribe_stops_delivery(recorder):
    # Arrange
    notifier = ChangeNotifier()
    unsubscribe = notifier.subscribe(recorder)

    # Act
    unsubscribe()
    unsubscribe()
    notifier.notify("orders", None)

    # Assert
    assert recorder.calls == []
    assert notifier.listener_count == 0
