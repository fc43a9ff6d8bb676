# tests/core/test_locking.py
"""Tests for the registry read/write lock."""

import threading
import time


class TestReadWriteLock:
    def test_readers_share(self) -> None:
        from cadenza.core.locking import ReadWriteLock

        lock = ReadWriteLock()
        inside = threading.Barrier(2, timeout=5)

        def reader() -> None:
            with lock.read():
                inside.wait()

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert not any(t.is_alive() for t in threads)

    def test_writer_excludes_readers(self) -> None:
        from cadenza.core.locking import ReadWriteLock

        lock = ReadWriteLock()
        events: list[str] = []
        writer_in = threading.Event()

        def writer() -> None:
            with lock.write():
                writer_in.set()
                time.sleep(0.05)
                events.append("write-done")

        def reader() -> None:
            writer_in.wait(timeout=5)
            with lock.read():
                events.append("read")

        w = threading.Thread(target=writer)
        r = threading.Thread(target=reader)
        w.start()
        r.start()
        w.join(timeout=5)
        r.join(timeout=5)

        assert events == ["write-done", "read"]

    def test_released_after_exception(self) -> None:
        from cadenza.core.locking import ReadWriteLock

        lock = ReadWriteLock()
        try:
            with lock.write():
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        acquired = threading.Event()

        def reader() -> None:
            with lock.read():
                acquired.set()

        t = threading.Thread(target=reader)
        t.start()
        t.join(timeout=5)
        assert acquired.is_set()
