# fanqueue

A bounded broadcast queue for threads.

Every value sent into the queue is delivered once to every *stream*. A
stream may be shared by several consumers, in which case they compete for
its values and each value on that stream goes to exactly one of them. The
capacity is rounded up to the next power of two (at least one), and a
sender never blocks in `try_send`: when the slowest stream is a full ring
behind, the send fails with `QueueFull` and the caller decides what to do.

## Installing

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Usage

```python
import threading

from fanqueue.broadcast import QueueFull, broadcast_queue

send, recv = broadcast_queue(4)

workers = []
for stream in range(2):
    cur = recv.add_stream()
    for consumer in range(2):
        reader = cur.clone()

        def run(reader=reader, stream=stream, consumer=consumer):
            for value in reader:
                print(f"Stream {stream} consumer {consumer} got {value}")

        workers.append(threading.Thread(target=run))
    cur.unsubscribe()

# The original receiver is a stream of its own; leave it so it does not
# hold the writers back.
recv.unsubscribe()

for t in workers:
    t.start()

for i in range(10):
    while True:
        try:
            send.try_send(i)
            break
        except QueueFull:
            pass

send.unsubscribe()  # closes the queue once every sender is gone
for t in workers:
    t.join()
```

All errors derive from `fanqueue.broadcast.QueueError`:

- `QueueFull` – the send could not be made; the value is kept on the
  exception's `value` attribute.
- `QueueEmpty` – nothing to receive yet, but senders are still connected.
- `Disconnected` – every sender has left and the stream is drained, no
  receiver is subscribed when sending, or the handle itself has already
  unsubscribed.

Senders (`BroadcastSender`):

- `try_send(value)` sends at once or raises.
- `clone()` adds another sender to the same queue.
- `unsubscribe()` leaves the queue.

Receivers (`BroadcastReceiver`):

- `recv()` blocks until a value arrives and raises `Disconnected` once all
  senders have left and the stream is drained.
- `try_recv()` never blocks; it raises `QueueEmpty` or `Disconnected`.
- `try_iter()` yields values until the stream is empty or closed.
- Iterating a receiver directly blocks for each value and stops on
  disconnection.
- `add_stream()` starts a new stream at this receiver's position;
  `clone()` adds another consumer to the same stream.
- `unsubscribe()` leaves the queue and returns `True` when it was the last
  consumer on its stream.

Senders and receivers are context managers that unsubscribe on exit, and a
handle that is garbage-collected is unsubscribed as well.

### Single-consumer streams

When a stream has only one consumer, `into_single()` turns the receiver into
a `BroadcastUniReceiver`, which applies a function to each value before it
is consumed:

```python
from fanqueue.broadcast import broadcast_queue

w, r = broadcast_queue(10)
single = r.into_single()
for i in range(5):
    w.try_send(i)

assert single.try_recv_view(lambda x: x + 1) == 1
print(list(single.try_iter_with(lambda x: 10 * x)))  # [10, 20, 30, 40]
```

`recv_view(op)` is the blocking form of `try_recv_view(op)`; a value is
consumed only if `op` returns normally. `iter_with(op)` yields `op(value)`
blocking until disconnection. `into_single()` raises `ValueError`, leaving
the receiver usable, when other consumers share the stream; `into_multi()`
turns a single receiver back into an ordinary one.

## Building blocks

`fanqueue.countedindex` provides `CountedIndex`, a thread-safe wrapping
64-bit counter over a power-of-two ring with compare-and-swap style
`Transaction` objects, and helpers such as `get_valid_wrap`, `past`,
`is_tagged` and `rm_tag`. `fanqueue.atomicsignal` provides `AtomicSignal`,
a pair of thread-safe flags, with `LoadedSignal` snapshots.

## Demo

```
fanqueue-demo
```

runs a handful of producer/consumer set-ups and prints what each consumer
receives. The same examples are available as `spsc_example`,
`spsc_bcast_example`, `spmc_bcast_example` and `wacky_example` in
`fanqueue.demo`, each taking an optional text stream to write to.

## What it does not do

- There is no asyncio interface: receivers are not async iterators, and
  there is no awaitable send that waits for room. Use the queue from
  threads, or from asyncio through `asyncio.to_thread`.
- There is no blocking send; `try_send` either succeeds at once or raises.