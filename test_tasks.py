"""Unit tests for face2name.tasks (AsyncQuery / CallbackLoop)"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from face2name.tasks import AsyncQuery, CallbackLoop, Failure, QueryCallbacks, Success


class Recorder(QueryCallbacks):
    def __init__(self):
        self.events = []
        self.threads = []

    def on_success(self, result):
        self.events.append(("success", result))
        self.threads.append(threading.get_ident())

    def on_error(self, error):
        self.events.append(("error", error))
        self.threads.append(threading.get_ident())


@pytest.fixture
def pool():
    ex = ThreadPoolExecutor(max_workers=4)
    yield ex
    ex.shutdown(wait=True)


@pytest.fixture
def loop():
    return CallbackLoop()


def test_success_delivered_on_calling_thread(pool, loop):
    worker = []
    rec = Recorder()

    def op():
        worker.append(threading.get_ident())
        return "ok"

    q = AsyncQuery(op, pool, loop, rec).execute()
    assert q.wait(timeout=5) == Success("ok")
    assert rec.events == [("success", "ok")]
    assert rec.threads == [threading.get_ident()]
    assert worker[0] != threading.get_ident()


@pytest.mark.parametrize("value", [None, 0, False, [], ""])
def test_empty_results_are_successes(pool, loop, value):
    rec = Recorder()
    q = AsyncQuery(lambda: value, pool, loop, rec).execute()
    outcome = q.wait(timeout=5)
    assert outcome.ok
    assert rec.events == [("success", value)]


def test_error_delivered_once(pool, loop):
    rec = Recorder()
    boom = OSError("disk full")

    def op():
        raise boom

    q = AsyncQuery(op, pool, loop, rec).execute()
    outcome = q.wait(timeout=5)
    assert outcome == Failure(boom)
    assert not outcome.ok
    assert rec.events == [("error", boom)]

    loop.run_pending(timeout=0.05)
    assert len(rec.events) == 1


def test_result_reraises(pool, loop):
    def op():
        raise KeyError("nope")

    q = AsyncQuery(op, pool, loop, Recorder()).execute()
    with pytest.raises(KeyError):
        q.result(timeout=5)


def test_default_callbacks(pool, loop):
    assert AsyncQuery(lambda: 3, pool, loop).execute().result(timeout=5) == 3

    def op():
        raise ValueError("logged, not raised")

    q = AsyncQuery(op, pool, loop).execute()
    assert isinstance(q.wait(timeout=5).error, ValueError)


def test_lifecycle_order(pool, loop):
    order = []

    class Tracked(AsyncQuery):
        def on_start(self):
            order.append("start")

        def on_complete(self):
            order.append("complete")

    class Cb(QueryCallbacks):
        def on_success(self, result):
            order.append("success")

    q = Tracked(lambda: order.append("run"), pool, loop, Cb())
    q.execute()
    assert order[0] == "start"
    q.wait(timeout=5)
    assert order == ["start", "run", "success", "complete"]


def test_lifecycle_order_on_error(pool, loop):
    order = []

    class Tracked(AsyncQuery):
        def on_start(self):
            order.append("start")

        def on_complete(self):
            order.append("complete")

    class Cb(QueryCallbacks):
        def on_error(self, error):
            order.append("error")

    def op():
        raise OSError("disk full")

    Tracked(op, pool, loop, Cb()).execute().wait(timeout=5)
    assert order == ["start", "error", "complete"]


def test_complete_runs_when_callback_raises(pool, loop):
    order = []

    class Tracked(AsyncQuery):
        def on_complete(self):
            order.append("complete")

    class Broken(QueryCallbacks):
        def on_success(self, result):
            order.append("success")
            raise RuntimeError("handler bug")

    q = Tracked(lambda: 1, pool, loop, Broken()).execute()
    with pytest.raises(RuntimeError, match="handler bug"):
        q.wait(timeout=5)
    assert order == ["success", "complete"]
    assert q.done


def test_callbacks_wait_for_loop(pool, loop):
    ran = threading.Event()
    rec = Recorder()

    def op():
        ran.set()
        return 1

    q = AsyncQuery(op, pool, loop, rec).execute()
    assert ran.wait(timeout=5)
    assert rec.events == []
    assert not q.done
    assert q.outcome is None

    q.wait(timeout=5)
    assert q.done
    assert rec.events == [("success", 1)]


def test_single_shot(pool, loop):
    q = AsyncQuery(lambda: 1, pool, loop)
    with pytest.raises(RuntimeError):
        q.wait(timeout=1)
    q.execute()
    with pytest.raises(RuntimeError):
        q.execute()
    q.wait(timeout=5)


def test_wait_timeout(pool, loop):
    release = threading.Event()
    q = AsyncQuery(lambda: release.wait(5), pool, loop).execute()
    with pytest.raises(TimeoutError):
        q.wait(timeout=0.1)
    release.set()
    assert q.result(timeout=5) is True


def test_wait_from_other_thread(pool, loop):
    q = AsyncQuery(lambda: "value", pool, loop).execute()
    seen = []
    t = threading.Thread(target=lambda: seen.append(q.wait(timeout=5)))
    t.start()
    while not q.done:
        loop.run_pending(timeout=0.05)
    t.join(timeout=5)
    assert seen == [Success("value")]


def test_foreign_thread_cannot_poll(loop):
    errors = []

    def poll():
        try:
            loop.run_pending()
        except RuntimeError as e:
            errors.append(e)

    t = threading.Thread(target=poll)
    t.start()
    t.join(timeout=5)
    assert len(errors) == 1


def test_callback_exception_surfaces_on_caller(pool, loop):
    class Broken(QueryCallbacks):
        calls = 0

        def on_success(self, result):
            Broken.calls += 1
            raise RuntimeError("handler bug")

    q = AsyncQuery(lambda: 1, pool, loop, Broken()).execute()
    with pytest.raises(RuntimeError, match="handler bug"):
        q.wait(timeout=5)
    assert q.done
    assert q.outcome == Success(1)
    loop.run_pending(timeout=0.05)
    assert Broken.calls == 1


def test_run_pending_counts(pool, loop):
    queries = [AsyncQuery(lambda i=i: i, pool, loop).execute() for i in range(3)]
    ran = 0
    while ran < 3:
        ran += loop.run_pending(timeout=1.0)
    assert all(q.done for q in queries)
    assert [q.outcome.value for q in queries] == [0, 1, 2]
    assert loop.run_pending() == 0
