"""Unit tests for notedex.debounce."""

import threading
import time

from notedex.debounce import Debouncer


class TestDebouncer:
    def test_burst_runs_once(self):
        calls = []
        done = threading.Event()

        def action():
            calls.append(time.monotonic())
            done.set()

        debouncer = Debouncer(0.1, action)
        for _ in range(5):
            debouncer.schedule()
        assert debouncer.pending
        assert done.wait(2.0)
        time.sleep(0.2)
        assert len(calls) == 1
        assert not debouncer.pending

    def test_cancel_prevents_run(self):
        calls = []
        debouncer = Debouncer(0.05, lambda: calls.append(1))
        debouncer.schedule()
        debouncer.cancel()
        time.sleep(0.15)
        assert calls == []
        assert not debouncer.pending

    def test_error_goes_to_callback(self):
        errors = []
        done = threading.Event()

        def boom():
            raise RuntimeError("nope")

        def on_error(exc):
            errors.append(exc)
            done.set()

        Debouncer(0.01, boom, on_error=on_error).schedule()
        assert done.wait(2.0)
        assert isinstance(errors[0], RuntimeError)

    def test_error_without_callback_is_logged(self, caplog):
        done = threading.Event()

        def boom():
            done.set()
            raise RuntimeError("nope")

        debouncer = Debouncer(0.01, boom)
        with caplog.at_level("ERROR", logger="notedex.debounce"):
            debouncer.schedule()
            assert done.wait(2.0)
            deadline = time.monotonic() + 2.0
            while not caplog.records and time.monotonic() < deadline:
                time.sleep(0.01)
        assert "Debounced action failed" in caplog.text
