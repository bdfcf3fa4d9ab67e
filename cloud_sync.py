import asyncio
import json
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from config import get_settings
from models import CloudSnapshot

logger = logging.getLogger(__name__)

STORAGE_PREFIX = "farm_cloud_v2:"


class CloudSyncError(RuntimeError):
    pass


def storage_key(identity: str) -> str:
    return STORAGE_PREFIX + identity.strip().lower()


class CloudSyncService:
    """Simulated cloud storage: one JSON document per identity, last write wins.

    Each identity gets its own key, so farms never see each other's data. The
    configured latency stands in for the network round trip.
    """

    def __init__(self, session: Session, latency_secs: Optional[float] = None) -> None:
        self.session = session
        if latency_secs is None:
            latency_secs = get_settings().sync_latency_secs
        self.latency_secs = latency_secs

    async def _simulate_network(self) -> None:
        if self.latency_secs > 0:
            await asyncio.sleep(self.latency_secs)

    async def push(self, identity: str, state: dict) -> None:
        key = storage_key(identity)
        await self._simulate_network()

        payload = json.dumps(state, default=str)
        snapshot = self.session.scalar(
            select(CloudSnapshot).where(CloudSnapshot.key == key)
        )
        if snapshot is None:
            self.session.add(CloudSnapshot(key=key, payload=payload))
        else:
            snapshot.payload = payload
        self.session.commit()
        logger.info(f"cloud_sync: action=push key={key} bytes={len(payload)}")

    async def pull(self, identity: str) -> Optional[dict]:
        key = storage_key(identity)
        await self._simulate_network()

        snapshot = self.session.scalar(
            select(CloudSnapshot).where(CloudSnapshot.key == key)
        )
        if snapshot is None:
            logger.info(f"cloud_sync: action=pull key={key} found=false")
            return None
        try:
            data = json.loads(snapshot.payload)
        except json.JSONDecodeError as exc:
            raise CloudSyncError(f"Stored state for {key} is not valid JSON") from exc
        logger.info(f"cloud_sync: action=pull key={key} found=true")
        return data
