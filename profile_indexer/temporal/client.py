"""Temporal client configuration and connection management."""

from typing import Optional

from temporalio.client import Client as TemporalClient

from profile_indexer.core.config import TemporalSettings, settings


class TemporalClientManager:
    """Manages Temporal client connection."""

    def __init__(self, temporal_settings: Optional[TemporalSettings] = None):
        self.temporal_settings = temporal_settings or settings.temporal
        self._client: Optional[TemporalClient] = None

    @property
    def target_host(self) -> str:
        return f"{self.temporal_settings.host}:{self.temporal_settings.port}"

    async def get_client(self) -> TemporalClient:
        """Get or create Temporal client instance.

        Returns:
            TemporalClient: Connected Temporal client
        """
        if self._client is None:
            self._client = await TemporalClient.connect(
                self.target_host,
                namespace=self.temporal_settings.namespace,
            )
        return self._client

    def set_client(self, client: TemporalClient) -> None:
        """Reuse a client that was connected elsewhere (the worker's own)."""
        self._client = client

    async def close(self) -> None:
        """Forget the cached client; the underlying connection is shared and closes with the process."""
        self._client = None


# Global Temporal client manager instance
_temporal_manager = TemporalClientManager()


async def get_temporal_client() -> TemporalClient:
    """Get Temporal client instance.

    Returns:
        TemporalClient: Connected Temporal client
    """
    return await _temporal_manager.get_client()


def set_temporal_client(client: TemporalClient) -> None:
    _temporal_manager.set_client(client)


async def close_temporal_client() -> None:
    """Close Temporal client connection."""
    await _temporal_manager.close()
