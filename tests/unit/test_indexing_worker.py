from bridge import DIRECT, IndexingWorker
from logpager.sources import MemorySource


def run_worker(data: bytes, encoding="utf-8", chunk_size=4, generation=3, stop_after=None):
    """Runs the worker on the calling thread and records every signal."""
    worker = IndexingWorker(MemorySource(data), encoding, chunk_size, generation)
    events = []

    def on_progress(g, done, total):
        events.append(("progress", g, done, total))
        if stop_after is not None and len(events) >= stop_after:
            worker.stop()

    worker.progress.connect(on_progress, DIRECT)
    worker.finished.connect(lambda g, index: events.append(("finished", g, index)), DIRECT)
    worker.error.connect(lambda g, msg: events.append(("error", g, msg)), DIRECT)
    worker.run()
    return events


def test_worker_reports_progress_then_result():
    events = run_worker(b"ab\ncd\nef\n")
    assert [e[0] for e in events] == ["progress", "progress", "progress", "finished"]
    assert [e[2] for e in events[:-1]] == [4, 8, 9]
    assert all(e[1] == 3 for e in events)

    index = events[-1][2]
    assert list(index.offsets) == [0, 3, 6, 9]
    assert index.line_count == 3


def test_stopped_worker_stays_silent():
    events = run_worker(b"x\n" * 20, stop_after=1)
    assert [e[0] for e in events] == ["progress"]


class BrokenSource(MemorySource):
    def _read(self, start, end):
        raise OSError("disk on fire")


def test_worker_reports_read_errors():
    worker = IndexingWorker(BrokenSource(b"abc\n"), "utf-8", 2, 1)
    errors = []
    worker.error.connect(lambda g, msg: errors.append((g, msg)), DIRECT)
    worker.run()
    assert len(errors) == 1
    assert errors[0][0] == 1
    assert "disk on fire" in errors[0][1]
