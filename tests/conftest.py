import asyncio
from typing import List, Optional

import pytest

from helpflow.config import HelpflowConfig
from helpflow.events import EventBus
from helpflow.models import HelpContext
from helpflow.session import HelpSession
from helpflow.testing import ManualScheduler


class FakeContentService:
    """Content service double: returns canned text, optionally waits on a gate."""

    def __init__(self, reply: str = "[]", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.requests: List = []
        self.gate: Optional[asyncio.Event] = None

    async def generate(self, request):
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def ctx():
    return HelpContext(feature="studio", component="canvas")


@pytest.fixture
def config():
    return HelpflowConfig()


@pytest.fixture
def service():
    return FakeContentService()


@pytest.fixture
def session(scheduler, config):
    s = HelpSession(config=config, scheduler=scheduler)
    yield s
    s.close()


@pytest.fixture
def recorder(bus):
    """Collect every event published on ``bus``."""
    events = []
    bus.subscribe("*", events.append)
    return events
