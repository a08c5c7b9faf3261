import threading
import time

import pytest

from microws.loop import CorkError, Loop, http_date


@pytest.fixture
def loop():
    lp = Loop()
    yield lp
    lp.free()


def test_http_date_epoch():
    assert http_date(0) == "Thu, 01 Jan 1970 00:00:00 GMT"


def test_http_date_rfc_example():
    assert http_date(784111777) == "Sun, 06 Nov 1994 08:49:37 GMT"


def test_update_date_matches_current_time(loop):
    before = int(time.time())
    loop.update_date()
    after = int(time.time())
    assert loop.date in {http_date(before), http_date(after)}
    assert len(loop.date) == 29


def test_defer_runs_on_iterate(loop):
    ran = []
    loop.defer(lambda: ran.append("a"))
    assert ran == []
    loop.iterate()
    assert ran == ["a"]
    loop.iterate()
    assert ran == ["a"]


def test_defer_during_drain_runs_next_iteration(loop):
    ran = []
    loop.defer(lambda: loop.defer(lambda: ran.append("inner")))
    loop.iterate()
    assert ran == []
    assert loop.has_deferred
    loop.iterate()
    assert ran == ["inner"]


def test_order_pre_deferred_post(loop):
    order = []
    loop.add_pre_handler("pre", lambda lp: order.append("pre"))
    loop.add_post_handler("post", lambda lp: order.append("post"))
    loop.defer(lambda: order.append("deferred"))
    loop.iterate()
    assert order == ["pre", "deferred", "post"]


def test_handlers_receive_loop(loop):
    seen = []
    loop.add_post_handler(1, seen.append)
    loop.iterate()
    assert seen == [loop]


def test_adding_same_key_keeps_first(loop):
    calls = []
    loop.add_pre_handler("k", lambda lp: calls.append(1))
    loop.add_pre_handler("k", lambda lp: calls.append(2))
    loop.iterate()
    assert calls == [1]


def test_remove_handlers(loop):
    calls = []
    loop.add_pre_handler("k", lambda lp: calls.append("pre"))
    loop.add_post_handler("k", lambda lp: calls.append("post"))
    loop.remove_pre_handler("k")
    loop.remove_post_handler("k")
    loop.remove_post_handler("missing")
    loop.iterate()
    assert calls == []


def test_handler_may_remove_itself(loop):
    seen = []
    loop.add_post_handler(
        "once", lambda lp: (seen.append(lp), lp.remove_post_handler("once"))
    )
    loop.iterate()
    loop.iterate()
    assert seen == [loop]


def test_corked_socket_after_iteration_raises(loop):
    loop.defer(lambda: setattr(loop, "corked_socket", object()))
    with pytest.raises(CorkError):
        loop.iterate()


def test_uncorked_in_post_handler_is_fine(loop):
    loop.corked_socket = object()
    loop.add_post_handler("uncork", lambda lp: setattr(lp, "corked_socket", None))
    loop.iterate()
    assert loop.corked_socket is None


def test_run_drains_chained_defers(loop):
    ran = []

    def step(n):
        ran.append(n)
        if n < 3:
            loop.defer(lambda: step(n + 1))

    loop.defer(lambda: step(1))
    loop.run()
    assert ran == [1, 2, 3]
    assert not loop.has_deferred


def test_defer_from_other_threads(loop):
    ran = []
    threads = [threading.Thread(target=loop.defer, args=(lambda i=i: ran.append(i),)) for i in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert loop.has_deferred
    loop.run()
    assert len(ran) == 20
    assert set(ran) == set(range(20))
    assert not loop.has_deferred


def test_get_is_per_thread_and_free_resets():
    first = Loop.get()
    assert Loop.get() is first
    other = []
    t = threading.Thread(target=lambda: other.append(Loop.get()))
    t.start()
    t.join()
    assert other[0] is not first
    first.free()
    second = Loop.get()
    assert second is not first
    second.free()


def test_set_silent(loop):
    loop.set_silent(True)
    assert loop.no_mark is True
    loop.set_silent(False)
    assert loop.no_mark is False


def test_free_drops_pending(loop):
    ran = []
    loop.defer(lambda: ran.append(1))
    loop.free()
    loop.iterate()
    assert ran == []