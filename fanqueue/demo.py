"""Small runnable demonstrations of the broadcast queue.

Each example writes one line per received value to ``out`` (standard output
by default). Values are produced with a busy-retrying ``try_send``, which is
only reasonable for demonstrations.
"""

from __future__ import annotations

import argparse
import sys
import threading
import time
from collections.abc import Callable, Iterable
from typing import Any, TextIO

from fanqueue.broadcast import (
    BroadcastReceiver,
    BroadcastSender,
    QueueFull,
    broadcast_queue,
)


class _LineWriter:
    """Writes whole lines to a stream from several threads at once."""

    def __init__(self, out: TextIO | None) -> None:
        self._out = sys.stdout if out is None else out
        self._lock = threading.Lock()

    def __call__(self, line: str) -> None:
        with self._lock:
            self._out.write(line + "\n")
            self._out.flush()


def _send_spinning(sender: BroadcastSender, values: Iterable[Any]) -> None:
    """Send every value, retrying while the queue is full."""
    for value in values:
        while True:
            try:
                sender.try_send(value)
                break
            except QueueFull:
                time.sleep(0)


def _consume(
    receiver: Any, items: Callable[[Any], Iterable[Any]], emit: Callable[[Any], None]
) -> threading.Thread:
    """Start a thread that emits every item of ``items(receiver)``, then leaves."""

    def run() -> None:
        with receiver:
            for item in items(receiver):
                emit(item)

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread


def _spawn_stream_consumers(
    recv: BroadcastReceiver, write: _LineWriter, streams: int, per_stream: int
) -> list[threading.Thread]:
    threads = []
    for i in range(streams):
        cur_recv = recv.add_stream()
        for j in range(per_stream):
            threads.append(
                _consume(
                    cur_recv.clone(),
                    iter,
                    lambda val, i=i, j=j: write(f"Stream {i} consumer {j} got {val}"),
                )
            )
        cur_recv.unsubscribe()
    return threads


def _join(threads: Iterable[threading.Thread]) -> None:
    for thread in threads:
        thread.join()


def spsc_example(out: TextIO | None = None) -> None:
    """One sender, one receiver: the receiver prints every value in order."""
    write = _LineWriter(out)
    send, recv = broadcast_queue(4)
    consumer = _consume(recv, iter, lambda val: write(f"Got {val}"))
    _send_spinning(send, range(10))
    send.unsubscribe()
    consumer.join()


def spsc_bcast_example(out: TextIO | None = None) -> None:
    """One sender broadcasting to two streams, each shared by two consumers."""
    write = _LineWriter(out)
    send, recv = broadcast_queue(4)
    threads = _spawn_stream_consumers(recv, write, streams=2, per_stream=2)
    # The original receiver would otherwise hold every stream back.
    recv.unsubscribe()
    _send_spinning(send, range(10))
    send.unsubscribe()
    _join(threads)


def spmc_bcast_example(out: TextIO | None = None) -> None:
    """Two streams with two competing consumers each, fed by one sender."""
    write = _LineWriter(out)
    send, recv = broadcast_queue(4)
    threads = _spawn_stream_consumers(recv, write, streams=2, per_stream=2)
    recv.unsubscribe()
    _send_spinning(send, range(10))
    send.unsubscribe()
    _join(threads)


def wacky_example(out: TextIO | None = None) -> None:
    """Shared streams alongside single-consumer streams that view values in place."""
    write = _LineWriter(out)
    send, recv = broadcast_queue(4)
    threads = _spawn_stream_consumers(recv, write, streams=2, per_stream=2)

    single_recv = recv.add_stream().into_single()
    threads.append(
        _consume(single_recv, lambda r: r.iter_with(lambda item: 10 * item), write)
    )

    # This one only drains whatever is there when it looks, then stops.
    single_recv_2 = recv.add_stream().into_single()
    threads.append(
        _consume(single_recv_2, lambda r: r.try_iter_with(lambda item: 10 * item), write)
    )

    recv.unsubscribe()
    for _ in range(3):
        _send_spinning(send, range(10))
    send.unsubscribe()
    _join(threads)


def main(argv: list[str] | None = None) -> int:
    """Run every example in turn, printing to standard output."""
    parser = argparse.ArgumentParser(
        prog="fanqueue-demo", description="Run the broadcast queue examples."
    )
    parser.parse_args(argv)
    out = sys.stdout
    out.write("SPSC example\n")
    spsc_example(out)
    out.write("\n\nSPSC Broadcast example\n")
    spsc_bcast_example(out)
    out.write("\n\nSPMC Broadcast example\n")
    spmc_bcast_example(out)
    out.write("\n\nWacky example\n")
    wacky_example(out)
    return 0


if __name__ == "__main__":
    sys.exit(main())