"""Sticker packs."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from signal_sdk.core.errors import MessageError
from signal_sdk.managers.base import BaseManager, unwrap_data
from signal_sdk.managers.models import StickerPackUploadResult


class StickerManager(BaseManager):
    async def list_sticker_packs(self) -> list[dict[str, Any]]:
        return await self._call("listStickerPacks", self._params()) or []

    async def add_sticker_pack(self, pack_id: str, pack_key: str) -> None:
        if not pack_id or not pack_key:
            raise MessageError("Pack ID and pack key are required")
        await self._call("addStickerPack", self._params(packId=pack_id, packKey=pack_key))

    async def upload_sticker_pack(self, path: str | Path) -> StickerPackUploadResult:
        """Upload a pack from a manifest directory or zip file."""
        result = await self._call("uploadStickerPack", self._params(path=str(path))) or {}
        return StickerPackUploadResult(
            pack_id=result.get("packId"),
            pack_key=result.get("packKey"),
            install_url=result.get("installUrl"),
        )

    async def get_sticker(self, pack_id: str, sticker_id: int) -> str:
        """Fetch one sticker; returns its base64 payload."""
        if not pack_id or sticker_id is None:
            raise MessageError("Pack ID and sticker ID are required")
        result = await self._call("getSticker", self._params(packId=pack_id, stickerId=sticker_id))
        return unwrap_data(result)


__all__ = ["StickerManager"]
