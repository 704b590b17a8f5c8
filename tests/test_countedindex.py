import threading

import pytest

from fanqueue.countedindex import (
    INITIAL_QUEUE_FLAG,
    MASK_IND,
    MAX_WRAP,
    CountedIndex,
    get_valid_wrap,
    is_tagged,
    past,
    rm_tag,
)


def _incr_param(wrap_size, goaround):
    counted = CountedIndex(wrap_size)
    for j in range(goaround):
        for i in range(wrap_size):
            trans = counted.load_transaction()
            assert counted.load() == i
            assert counted.load_count() == i + j * wrap_size
            assert trans.get()[0] == i
            trans.commit_direct(1)
    assert counted.load() == 0
    assert counted.load_count() == wrap_size * goaround


def _incr_param_threaded(wrap_size, goaround, nthread):
    counted = CountedIndex(wrap_size)

    def work():
        for _ in range(goaround * wrap_size):
            trans = counted.load_transaction()
            while True:
                nxt = trans.commit(1)
                if nxt is None:
                    break
                trans = nxt

    threads = [threading.Thread(target=work) for _ in range(nthread)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert counted.load() == 0
    assert counted.load_count() == wrap_size * goaround * nthread


def test_small():
    _incr_param(16, 100)


def test_tiny():
    _incr_param(1, 100)


def test_wrapu16():
    _incr_param(1 + 65535, 2)


@pytest.mark.timeout(60)
def test_small_mt():
    _incr_param_threaded(16, 1000, 2)


@pytest.mark.timeout(60)
def test_tiny_mt():
    _incr_param_threaded(1, 10000, 2)


@pytest.mark.timeout(120)
def test_wrapu16_mt():
    _incr_param_threaded(65535 + 1, 1, 2)


def test_transaction_fail():
    counted = CountedIndex(16)
    trans = counted.load_transaction()
    trans2 = counted.load_transaction()
    trans2.commit_direct(1)
    retry = trans.commit(1)
    assert retry is not None
    assert retry.get()[1] == 1
    assert retry.commit(1) is None
    assert counted.load_count() == 2


def test_reload_sees_new_value():
    counted = CountedIndex(4)
    trans = counted.load_transaction()
    counted.load_transaction().commit_direct(3)
    assert trans.reload().get() == (3, 3)


def test_from_value_wraps_position():
    counted = CountedIndex(4, 6)
    assert counted.load_count() == 6
    assert counted.load() == 6 % 4
    assert counted.wrap_at() == 4


def test_matches_previous():
    counted = CountedIndex(8, 8 + 5)
    trans = counted.load_transaction()
    assert trans.matches_previous(5)
    assert not trans.matches_previous(13)


def test_get_previous_wraps_below_zero():
    assert CountedIndex.get_previous(10, 4) == 6
    assert CountedIndex.get_previous(0, 1) == INITIAL_QUEUE_FLAG


@pytest.mark.parametrize("bad", [0, 3, 12, MAX_WRAP + 1])
def test_invalid_wrap_rejected(bad):
    with pytest.raises(ValueError):
        CountedIndex(bad)


def test_get_valid_wrap_bounds():
    assert get_valid_wrap(0) == 1
    assert get_valid_wrap(MAX_WRAP + 5) == MAX_WRAP
    for val in range(1, 200):
        wrap = get_valid_wrap(val)
        assert wrap & (wrap - 1) == 0
        assert val <= wrap < 2 * val


def test_get_valid_wrap_accepted_by_counter():
    for val in (1, 7, 16, 1000):
        assert CountedIndex(get_valid_wrap(val)).wrap_at() == get_valid_wrap(val)


def test_past():
    assert past(5, 3) == (2, False)
    diff, behind = past(3, 5)
    assert behind
    assert diff == INITIAL_QUEUE_FLAG - 1
    assert past(MAX_WRAP, 0) == (MAX_WRAP, False)


def test_tags():
    assert is_tagged(MASK_IND | 7)
    assert not is_tagged(7)
    assert rm_tag(MASK_IND | 7) == 7


def test_commit_clears_tag():
    counted = CountedIndex(2, MASK_IND)
    counted.load_transaction().commit_direct(1)
    assert not is_tagged(counted.load_count())
    assert counted.load_count() == 1