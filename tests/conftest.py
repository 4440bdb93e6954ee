"""
Pytest configuration and fixtures for dispute engine tests.
"""
from datetime import datetime, timedelta, timezone
from typing import List, Tuple

import pytest
from httpx import ASGITransport, AsyncClient

from dispute_engine.config import VALID_CHANNELS, Settings
from dispute_engine.engine import DisputeEngine
from dispute_engine.main import create_app
from dispute_engine.notifications.application import IChannelSink
from dispute_engine.notifications.domain import NotificationData
from dispute_engine.tracking.domain import DisputeSnapshot

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


class RecordingSink(IChannelSink):
    """Channel sink that remembers every delivery."""

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []

    async def send(self, notification: NotificationData, channel: str) -> bool:
        self.sent.append((notification.id, channel))
        return True


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with background jobs disabled and no policy file."""
    return Settings(
        environment="test",
        monitor_interval_seconds=0,
        dispatch_interval_seconds=0,
        tracking_policy_path=tmp_path / "tracking_policy.yaml",
        notification_webhook_url=None,
    )


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
async def engine(settings, recording_sink):
    """Engine whose channels all deliver into ``recording_sink``."""
    engine = DisputeEngine(
        settings,
        sinks={channel: recording_sink for channel in VALID_CHANNELS},
    )
    yield engine
    await engine.stop()


@pytest.fixture
async def client(settings, engine):
    """Create async test client."""
    app = create_app(settings, engine)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_dispute():
    """Factory for dispute snapshots created relative to ``NOW``."""

    def _make(
        id: str = "d1",
        hours_open: float = 1,
        **overrides
    ) -> DisputeSnapshot:
        data = {
            "id": id,
            "reason": "Item not received",
            "raised_by": "buyer_42",
            "raised_against": "seller_7",
            "transaction_id": "txn_9001",
            "created_at": NOW - timedelta(hours=hours_open),
        }
        data.update(overrides)
        return DisputeSnapshot(**data)

    return _make
