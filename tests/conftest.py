import asyncio
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from notify_service.models.db import init_models
from notify_service.push.models import PushResult
from notify_service.services.delivery_service import ChannelSenders


class FakePushService:
    """Stands in for PushService: records calls, returns a canned result"""

    def __init__(self, result: Optional[PushResult] = None):
        self.result = result or PushResult(success_count=1, failure_count=0)
        self.exc: Optional[Exception] = None
        self.delay = 0.0
        self.calls = []
        self.valid_tokens = {"device-token"}

    async def send(self, user_id, payload):
        self.calls.append((user_id, payload))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc:
            raise self.exc
        return self.result

    async def validate_token(self, token):
        return token in self.valid_tokens


class FakeGateway:
    def __init__(self, ok: bool = True):
        self.ok = ok
        self.calls = []

    async def send(self, user_id, *args):
        self.calls.append((user_id,) + args)
        return self.ok


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'notify_test.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def senders():
    return ChannelSenders(push=FakePushService(), email=FakeGateway(), sms=FakeGateway())
