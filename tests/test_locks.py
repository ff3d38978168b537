import asyncio

import pytest

from studymatch.core.locks import KeyedLock


async def test_same_key_is_exclusive_and_other_keys_are_not():
    locks = KeyedLock()
    order = []

    async def hold(key, tag):
        async with locks.hold(key):
            order.append(f"{tag}-in")
            await asyncio.sleep(0.01)
            order.append(f"{tag}-out")

    await asyncio.gather(hold("math", "a"), hold("math", "b"), hold("art", "c"))

    assert order.index("a-out") < order.index("b-in")
    assert order.index("c-in") < order.index("a-out")


async def test_entry_lives_while_a_task_waits():
    locks = KeyedLock()
    release = asyncio.Event()

    async def first():
        async with locks.hold("k"):
            await release.wait()

    async def second():
        async with locks.hold("k"):
            pass

    holder = asyncio.create_task(first())
    await asyncio.sleep(0)
    waiter = asyncio.create_task(second())
    await asyncio.sleep(0)
    assert len(locks) == 1
    assert not waiter.done()

    release.set()
    await asyncio.gather(holder, waiter)
    assert len(locks) == 0


async def test_entry_is_dropped_after_an_exception():
    locks = KeyedLock()

    with pytest.raises(RuntimeError):
        async with locks.hold("k"):
            raise RuntimeError("boom")

    assert len(locks) == 0
