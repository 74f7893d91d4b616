"""Example: in-memory observer fan-out (channel notifications, then a stock ticker)."""

import logging

from fanout import (
    ChangeLogObserver,
    DefaultObserver,
    DisplayBoard,
    Publisher,
    StatefulSubject,
    Subject,
    Threshold,
    ThresholdAlertObserver,
    TopicFilter,
)

logging.basicConfig(level=logging.INFO)


def channel_demo() -> None:
    channel = Subject("ElixirLearning")
    uploader = Publisher("uploader", channel)

    viewers = [DefaultObserver(name).start() for name in ("alice", "bob", "charlie")]
    for viewer in viewers:
        channel.subscribe(viewer, "videos")

    uploader.publish("videos", {"title": "Observer Pattern in Python"})
    for viewer in viewers:
        viewer.flush(timeout=1.0)

    channel.unsubscribe(viewers[1])
    uploader.publish("videos", {"title": "Threads and Mailboxes"})
    for viewer in viewers:
        viewer.flush(timeout=1.0)
        viewer.stop()

    print({v.observer_id: len(v.messages) for v in viewers})


def ticker_demo() -> None:
    exchange = StatefulSubject("exchange")
    board = DisplayBoard("main-board").start()
    alerts = ThresholdAlertObserver(
        "alerts",
        {
            "RELIANCE": Threshold(high=2500, low=2300),
            "TCS": Threshold(high=3800, low=3500),
        },
    ).start()
    audit = ChangeLogObserver("audit").start()

    exchange.subscribe(board, TopicFilter.of("RELIANCE", "TCS", "INFY"))
    exchange.subscribe(alerts, TopicFilter.of("RELIANCE", "TCS"))
    exchange.subscribe(audit)

    for symbol, price in [
        ("RELIANCE", 2400), ("TCS", 3700), ("INFY", 1500), ("HDFC", 2800),
        ("RELIANCE", 2480), ("RELIANCE", 2510),
        ("TCS", 3600), ("TCS", 3480),
    ]:
        exchange.update(symbol, price)

    for observer in (board, alerts, audit):
        observer.flush(timeout=1.0)
        observer.stop()

    print(board.render())
    for alert in alerts.alerts:
        print(f"ALERT {alert.topic} crossed {alert.direction} {alert.limit:g}: {alert.old:g} -> {alert.new:g}")


def main() -> None:
    channel_demo()
    ticker_demo()


if __name__ == "__main__":
    main()
