import queue
import threading
import time

import pytest

from app.models.schemas import Message, TriggerDefinition
from domains.triggers.events import FileEvent
from domains.triggers.loader import WatchAttachError
from domains.triggers.modes import Mode
from domains.triggers.trigger import Trigger, TriggerState


def make_trigger(outbox, path="/data/in", modes=("create", "write"), **kwargs) -> Trigger:
    definition = TriggerDefinition(
        name="incoming",
        subject="Incoming files",
        paths=path,
        modes=list(modes),
        watchers=["ops@example.com", "dev@example.com", "ops@example.com"],
    )
    return Trigger(definition, outbox, **kwargs)


def drain(outbox) -> list[Message]:
    messages = []
    while True:
        try:
            messages.append(outbox.get_nowait())
        except queue.Empty:
            return messages


def test_flush_with_empty_log_queues_nothing(outbox):
    trigger = make_trigger(outbox)

    assert trigger.flush() is None
    assert outbox.empty()
    assert trigger.stats.flushes == 0


def test_qualifying_event_logs_kind_and_joined_path(outbox):
    trigger = make_trigger(outbox)

    assert trigger.handle_event(FileEvent(name="report.csv", kind=Mode.CREATE))
    msg = trigger.flush()

    line = msg.body.rstrip("\n")
    assert "CREATE" in line
    assert line.endswith(" CREATE /data/in/report.csv")
    assert msg.body.count("\n") == 1


def test_absolute_event_name_is_kept(outbox):
    trigger = make_trigger(outbox)

    trigger.handle_event(FileEvent(name="/data/in/report.csv", kind=Mode.WRITE))

    assert trigger.flush().body.rstrip("\n").endswith(" WRITE /data/in/report.csv")


def test_non_qualifying_event_is_discarded(outbox):
    trigger = make_trigger(outbox)

    assert not trigger.handle_event(FileEvent(name="report.csv", kind=Mode.CHMOD))
    assert not trigger.handle_event(FileEvent(name="report.csv", kind=Mode.RENAME))

    assert trigger.pending == 0
    assert trigger.flush() is None
    assert trigger.stats.events_seen == 2
    assert trigger.stats.lines_logged == 0


def test_combined_kind_matches_if_any_flag_matches(outbox):
    trigger = make_trigger(outbox, modes=["chmod"])

    assert trigger.handle_event(FileEvent(name="a", kind=Mode.WRITE | Mode.CHMOD))
    assert "WRITE|CHMOD /data/in/a" in trigger.flush().body


def test_flush_builds_message_and_clears_log(outbox):
    trigger = make_trigger(outbox)
    trigger.handle_event(FileEvent(name="a", kind=Mode.CREATE))
    trigger.handle_event(FileEvent(name="b", kind=Mode.WRITE))

    msg = trigger.flush()

    assert outbox.get_nowait() is msg
    assert msg.subject == "Incoming files"
    assert msg.recipients == ("ops@example.com", "dev@example.com", "ops@example.com")
    lines = msg.body.splitlines()
    assert lines[0].endswith("CREATE /data/in/a")
    assert lines[1].endswith("WRITE /data/in/b")
    assert trigger.pending == 0
    assert trigger.flush() is None


def test_scenario_create_then_filtered_chmod_then_shutdown(outbox):
    trigger = make_trigger(outbox, path="/data/in", modes=["create", "write"])
    trigger.start()

    trigger.submit(FileEvent(name="/data/in/report.csv", kind=Mode.CREATE))
    trigger.submit(FileEvent(name="/data/in/report.csv", kind=Mode.CHMOD))
    trigger.stop()

    messages = drain(outbox)
    assert len(messages) == 1
    msg = messages[0]
    lines = msg.body.splitlines()
    assert len(lines) == 1
    assert "CREATE" in lines[0]
    assert "/data/in/report.csv" in lines[0]
    assert msg.subject == "Incoming files"
    assert list(msg.recipients) == ["ops@example.com", "dev@example.com", "ops@example.com"]


def test_stop_handles_every_queued_event_before_final_flush(outbox):
    trigger = make_trigger(outbox)
    trigger.start()

    for i in range(200):
        trigger.submit(FileEvent(name=f"file-{i:03d}", kind=Mode.WRITE))
    trigger.stop()

    messages = drain(outbox)
    assert len(messages) == 1
    lines = messages[0].body.splitlines()
    assert len(lines) == 200
    # Sequential handling keeps arrival order.
    assert [line.rsplit("/", 1)[1] for line in lines] == [f"file-{i:03d}" for i in range(200)]


def test_stop_is_idempotent(outbox):
    trigger = make_trigger(outbox)
    trigger.start()
    trigger.submit(FileEvent(name="a", kind=Mode.CREATE))

    trigger.stop()
    trigger.stop()

    assert trigger.state is TriggerState.STOPPED
    assert len(drain(outbox)) == 1


def test_stop_without_start_flushes_buffered_events(outbox):
    trigger = make_trigger(outbox)
    trigger.submit(FileEvent(name="early", kind=Mode.CREATE))

    trigger.stop()

    messages = drain(outbox)
    assert len(messages) == 1
    assert "CREATE /data/in/early" in messages[0].body


def test_start_after_stop_does_nothing(outbox):
    trigger = make_trigger(outbox)
    trigger.stop()
    trigger.start()

    assert trigger.state is TriggerState.STOPPED


def test_periodic_flush(outbox):
    trigger = make_trigger(outbox, flush_interval=0.05)
    trigger.start()
    try:
        trigger.submit(FileEvent(name="tick", kind=Mode.CREATE))
        msg = outbox.get(timeout=5)
    finally:
        trigger.stop()

    assert "CREATE /data/in/tick" in msg.body
    # Nothing new was logged, so neither later ticks nor stop queue anything.
    assert outbox.empty()


def test_flush_reports_full_queue(log_messages):
    full = queue.Queue(maxsize=1)
    full.put_nowait("occupied")
    trigger = make_trigger(full, enqueue_timeout=0.01)
    trigger.handle_event(FileEvent(name="a", kind=Mode.CREATE))

    assert trigger.flush() is None
    assert any("mail queue full" in m and "incoming" in m for m in log_messages)
    assert trigger.stats.flushes == 0


def test_concurrent_submitters_do_not_corrupt_lines(outbox):
    trigger = make_trigger(outbox)
    trigger.start()

    def produce(prefix):
        for i in range(50):
            trigger.submit(FileEvent(name=f"{prefix}-{i}", kind=Mode.WRITE))

    threads = [threading.Thread(target=produce, args=(p,)) for p in ("x", "y", "z")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    trigger.stop()

    body = drain(outbox)[0].body
    lines = body.splitlines()
    assert len(lines) == 150
    assert all(" WRITE /data/in/" in line for line in lines)


def test_attach_missing_path_fails(outbox, tmp_path):
    trigger = make_trigger(outbox, path=str(tmp_path / "missing"))

    with pytest.raises(WatchAttachError):
        trigger.attach()


def test_attach_observer_failure_is_reported(outbox, tmp_path):
    stopped = []

    class BrokenObserver:
        daemon = False

        def stop(self):
            stopped.append(self)

        def schedule(self, handler, path, recursive=False):
            pass

        def start(self):
            raise OSError("inotify watch limit reached")

    trigger = make_trigger(outbox, path=str(tmp_path))

    with pytest.raises(WatchAttachError, match="inotify watch limit"):
        trigger.attach(observer_factory=BrokenObserver)

    assert len(stopped) == 1


def test_periodic_flush_runs_while_events_keep_arriving(outbox):
    trigger = make_trigger(outbox, flush_interval=0.05)
    trigger.start()
    done = threading.Event()

    def produce():
        i = 0
        while not done.is_set():
            trigger.submit(FileEvent(name=f"busy-{i}", kind=Mode.WRITE))
            i += 1
            time.sleep(0.001)

    producer = threading.Thread(target=produce)
    producer.start()
    try:
        time.sleep(1.0)
        periodic = outbox.qsize()
    finally:
        done.set()
        producer.join()
        trigger.stop()

    assert periodic >= 5
    assert trigger.stats.flushes >= periodic
