"""Shared test fixtures for all test modules."""

import asyncio
from typing import List, Tuple

import pytest

from blockwriter.models.block import Block, BlockKind
from blockwriter.models.chapter import Chapter
from blockwriter.services.gateway import InMemoryChapterGateway


async def settle(rounds: int = 10) -> None:
    """Let woken tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class ManualClock:
    """
    Fake time source for timer tests.

    ``sleep`` parks the caller until ``advance`` moves the clock past its
    deadline, so quiet periods of 30 seconds run instantly and in a fixed
    order.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._sleepers: List[Tuple[float, int, asyncio.Future]] = []
        self._seq = 0

    async def settle(self) -> None:
        await settle()

    async def wait_until(self, predicate, timeout: float = 2.0) -> None:
        """Wait in real time for work handed to executor threads."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        await settle()
        while not predicate():
            assert loop.time() < deadline, "condition not reached before timeout"
            await asyncio.sleep(0.01)
            await settle()

    async def sleep(self, delay: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self._seq += 1
        self._sleepers.append((self.now + delay, self._seq, future))
        await future

    @property
    def pending(self) -> int:
        return sum(1 for _, _, f in self._sleepers if not f.done())

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        await settle()
        while True:
            self._sleepers = [s for s in self._sleepers if not s[2].done()]
            due = [s for s in self._sleepers if s[0] <= target]
            if not due:
                break
            deadline, _, future = min(due, key=lambda s: (s[0], s[1]))
            self.now = deadline
            future.set_result(None)
            await settle()
        self.now = target
        await settle()


@pytest.fixture
def clock():
    """Manual clock whose sleep() is driven by advance()."""
    return ManualClock()


@pytest.fixture
def gateway():
    """In-memory chapter gateway."""
    return InMemoryChapterGateway()


@pytest.fixture
def sample_chapter():
    """Chapter with a heading, two paragraphs and a checked todo."""
    return Chapter(
        chapter_id="ch1",
        project_id="p1",
        title="The Discovery",
        blocks=[
            Block(id="b1", kind=BlockKind.HEADING_1, content="The Discovery"),
            Block(id="b2", kind=BlockKind.PARAGRAPH, content="I found it in the basement."),
            Block(id="b3", kind=BlockKind.PARAGRAPH, content="A trapdoor, small and unassuming."),
            Block(id="b4", kind=BlockKind.TODO, content="Describe the key", checked=True),
        ],
    )
