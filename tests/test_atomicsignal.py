import threading

from fanqueue.atomicsignal import NO_READER, UPDATE_EPOCH, AtomicSignal, LoadedSignal


def test_fresh_signal_has_no_action():
    sig = AtomicSignal().load()
    assert not sig.has_action()
    assert not sig.get_epoch()
    assert not sig.get_reader()


def test_set_and_clear_epoch():
    sig = AtomicSignal()
    assert sig.set_epoch() is False
    assert sig.set_epoch() is True
    loaded = sig.load()
    assert loaded.get_epoch()
    assert loaded.has_action()
    assert not loaded.get_reader()
    assert sig.clear_epoch() is True
    assert sig.clear_epoch() is False
    assert not sig.load().has_action()


def test_set_and_clear_reader():
    sig = AtomicSignal()
    assert sig.set_reader() is False
    assert sig.set_reader() is True
    loaded = sig.load()
    assert loaded.get_reader()
    assert not loaded.get_epoch()
    assert sig.clear_reader() is True
    assert sig.clear_reader() is False
    assert not sig.load().has_action()


def test_flags_are_independent():
    sig = AtomicSignal()
    sig.set_epoch()
    sig.set_reader()
    assert sig.load().flags == UPDATE_EPOCH | NO_READER
    sig.clear_epoch()
    loaded = sig.load()
    assert loaded.get_reader()
    assert not loaded.get_epoch()
    assert loaded.flags == NO_READER


def test_snapshot_does_not_change():
    sig = AtomicSignal()
    before = sig.load()
    sig.set_epoch()
    assert before == LoadedSignal(0)
    assert sig.load() != before


def test_only_one_thread_sees_first_set():
    sig = AtomicSignal()
    results = []
    lock = threading.Lock()

    def worker():
        prev = sig.set_epoch()
        with lock:
            results.append(prev)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count(False) == 1
    assert len(results) == 8
    loaded = sig.load()
    assert loaded.get_epoch()
    assert loaded.flags == UPDATE_EPOCH
    assert sig.set_epoch() is True