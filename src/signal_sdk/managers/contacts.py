"""Contacts, blocking, identities and profiles."""

from __future__ import annotations

from typing import Any

from signal_sdk.core.errors import MessageError, ValidationError
from signal_sdk.managers.base import BaseManager, unwrap_data
from signal_sdk.managers.models import ContactUpdateOptions, UserStatus
from signal_sdk.validators import validate_group_id, validate_recipient


def normalize_contact(contact: dict[str, Any]) -> dict[str, Any]:
    """Derive ``profileName`` from given/family name when the daemon left it empty."""
    given = contact.get("givenName") or None
    family = contact.get("familyName") or None
    profile_name = contact.get("profileName")
    if not profile_name:
        profile_name = f"{given} {family}" if given and family else (given or family)
    return {
        **contact,
        "givenName": given,
        "familyName": family,
        "mobileCoinAddress": contact.get("mobileCoinAddress") or None,
        "profileName": profile_name,
    }


class ContactManager(BaseManager):
    async def update_contact(
        self,
        number: str,
        name: str | None = None,
        options: ContactUpdateOptions | None = None,
    ) -> None:
        validate_recipient(number)
        extra = options.to_params() if options else {}
        await self._call("updateContact", self._params(recipient=number, name=name or None, **extra))

    async def remove_contact(self, number: str, *, hide: bool = False, forget: bool = False) -> None:
        validate_recipient(number)
        params = self._params(
            recipient=number,
            hide=True if hide else None,
            forget=True if forget else None,
        )
        await self._call("removeContact", params)

    async def list_contacts(self) -> list[dict[str, Any]]:
        return await self._call("listContacts", self._params()) or []

    async def get_contacts_with_profiles(self) -> list[dict[str, Any]]:
        return [normalize_contact(c) for c in await self.list_contacts()]

    async def block(self, recipients: list[str], group_id: str | None = None) -> None:
        for recipient in recipients:
            validate_recipient(recipient)
        await self._call("block", self._params(recipient=list(recipients), groupId=group_id))

    async def unblock(self, recipients: list[str], group_id: str | None = None) -> None:
        for recipient in recipients:
            validate_recipient(recipient)
        await self._call("unblock", self._params(recipient=list(recipients), groupId=group_id))

    async def get_user_status(
        self,
        numbers: list[str] | None = None,
        usernames: list[str] | None = None,
    ) -> list[UserStatus]:
        """Check which numbers/usernames are registered on Signal."""
        params = self._params(recipients=numbers or None, usernames=usernames or None)
        result = await self._call("getUserStatus", params)
        entries: list[dict[str, Any]]
        if isinstance(result, list):
            entries = result
        elif isinstance(result, dict):
            entries = result.get("recipients") or []
        else:
            entries = []
        return [
            UserStatus(
                number=entry.get("number"),
                is_registered=bool(entry.get("isRegistered", False)),
                uuid=entry.get("uuid"),
                username=entry.get("username"),
            )
            for entry in entries
        ]

    async def list_identities(self, number: str | None = None) -> list[dict[str, Any]]:
        return await self._call("listIdentities", self._params(number=number)) or []

    async def trust_identity(
        self,
        number: str,
        safety_number: str | None = None,
        *,
        trust_all_known_keys: bool = False,
    ) -> None:
        """Trust ``number``'s identity by safety number, or all known keys."""
        validate_recipient(number)
        if not safety_number and not trust_all_known_keys:
            raise ValidationError(
                "Either safety_number or trust_all_known_keys is required", "safety_number"
            )
        params = self._params(
            recipient=number,
            verifiedSafetyNumber=safety_number,
            trustAllKnownKeys=True if trust_all_known_keys else None,
        )
        await self._call("trust", params)

    async def get_avatar(
        self,
        *,
        contact: str | None = None,
        profile: str | None = None,
        group_id: str | None = None,
    ) -> str:
        """Fetch an avatar as base64; exactly one selector is used."""
        if contact:
            validate_recipient(contact)
            selector: dict[str, Any] = {"contact": contact}
        elif profile:
            validate_recipient(profile)
            selector = {"profile": profile}
        elif group_id:
            validate_group_id(group_id)
            selector = {"groupId": group_id}
        else:
            raise MessageError("Must specify contact, profile, or group_id")
        return unwrap_data(await self._call("getAvatar", self._params(**selector)))


__all__ = ["ContactManager", "normalize_contact"]
