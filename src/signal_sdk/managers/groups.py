"""Group creation, membership and settings."""

from __future__ import annotations

from typing import Any

from signal_sdk.core.errors import GroupError
from signal_sdk.managers.base import BaseManager
from signal_sdk.managers.models import GroupUpdateOptions
from signal_sdk.validators import validate_group_id, validate_recipient


def normalize_group(group: dict[str, Any]) -> dict[str, Any]:
    """Fill list fields with empty lists and reconcile the invite link keys."""
    link = group.get("groupInviteLink") or group.get("inviteLink")
    return {
        **group,
        "inviteLink": link,
        "groupInviteLink": link,
        "pendingMembers": group.get("pendingMembers") or [],
        "banned": group.get("banned") or [],
        "requestingMembers": group.get("requestingMembers") or [],
        "admins": group.get("admins") or [],
        "members": group.get("members") or [],
    }


class GroupManager(BaseManager):
    async def create_group(self, name: str, members: list[str]) -> dict[str, Any]:
        """Create a group; ``updateGroup`` without a group id creates one."""
        if not name:
            raise GroupError("Group name is required")
        for member in members:
            validate_recipient(member)
        return await self._call("updateGroup", self._params(name=name, members=list(members)))

    async def update_group(self, group_id: str, options: GroupUpdateOptions) -> dict[str, Any] | None:
        validate_group_id(group_id)
        return await self._call("updateGroup", self._params(groupId=group_id, **options.to_params()))

    async def list_groups(
        self,
        *,
        detailed: bool = False,
        group_ids: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        params = self._params(
            detailed=True if detailed else None,
            groupId=list(group_ids) if group_ids else None,
        )
        return await self._call("listGroups", params) or []

    async def get_groups_with_details(self, group_ids: list[str] | None = None) -> list[dict[str, Any]]:
        groups = await self.list_groups(detailed=True, group_ids=group_ids)
        return [normalize_group(g) for g in groups]

    async def quit_group(self, group_id: str, delete: bool = False) -> None:
        validate_group_id(group_id)
        await self._call("quitGroup", self._params(groupId=group_id, delete=True if delete else None))

    async def join_group(self, uri: str) -> None:
        if not uri:
            raise GroupError("Group invite URI is required")
        await self._call("joinGroup", self._params(uri=uri))


__all__ = ["GroupManager", "normalize_group"]
