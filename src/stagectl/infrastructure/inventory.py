"""Read-only view of deployed API gateways via boto3.

Credentials come from the standard AWS chain (``AWS_ACCESS_KEY_ID`` /
``AWS_SECRET_ACCESS_KEY``, profiles, instance roles).
"""

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from stagectl.domain.errors import InventoryError

logger = logging.getLogger(__name__)


class ApiInventory:
    """Lists HTTP/WebSocket APIs in one region.

    A pre-built *client* may be passed in (tests, shared sessions);
    otherwise an ``apigatewayv2`` client is created lazily on first query.
    """

    def __init__(self, region: str, *, client: Any | None = None) -> None:
        self._region = region
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client("apigatewayv2", region_name=self._region)
        return self._client

    def list_apis(self) -> list[dict[str, Any]]:
        """Return every API in the region, following pagination."""
        items: list[dict[str, Any]] = []
        try:
            paginator = self.client.get_paginator("get_apis")
            for page in paginator.paginate():
                items.extend(page.get("Items", []))
        except (BotoCoreError, ClientError) as exc:
            msg = f"Could not list API gateways in {self._region}: {exc}"
            raise InventoryError(msg) from exc
        logger.debug("Inventory returned %d API(s) in %s", len(items), self._region)
        return items

    def find_by_name(self, name: str) -> list[dict[str, Any]]:
        """Return all APIs whose ``Name`` equals *name* exactly."""
        return [item for item in self.list_apis() if item.get("Name") == name]
