"""Registration, profile, account settings and multi-device sync."""

from __future__ import annotations

from typing import Any

from signal_sdk.core.errors import SignalError, ValidationError
from signal_sdk.managers.base import BaseManager
from signal_sdk.managers.models import (
    AccountConfiguration,
    AccountUpdateResult,
    MessageRequestResponse,
    RateLimitChallengeResult,
    UpdateAccountOptions,
)
from signal_sdk.validators import validate_phone_number, validate_recipient


class AccountManager(BaseManager):
    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    async def register(self, number: str, voice: bool = False, captcha: str | None = None) -> None:
        validate_phone_number(number, "number")
        params: dict[str, Any] = {"account": number, "voice": voice}
        if captcha:
            params["captcha"] = captcha
        await self._call("register", params)

    async def verify(self, number: str, token: str, pin: str | None = None) -> None:
        validate_phone_number(number, "number")
        if not token:
            raise ValidationError("Verification token is required", "token")
        params: dict[str, Any] = {"account": number, "token": token}
        if pin:
            params["pin"] = pin
        await self._call("verify", params)

    async def unregister(self) -> None:
        self._logger.warning("account.unregistering", account=self.account)
        await self._call("unregister", self._params())

    async def delete_local_account_data(self) -> None:
        self._logger.warning("account.deleting_local_data", account=self.account)
        await self._call("deleteLocalAccountData", self._params())

    # -------------------------------------------------------------------------
    # Profile and settings
    # -------------------------------------------------------------------------

    async def update_profile(
        self,
        name: str,
        about: str | None = None,
        about_emoji: str | None = None,
        avatar: str | None = None,
        *,
        family_name: str | None = None,
        mobile_coin_address: str | None = None,
        remove_avatar: bool = False,
    ) -> None:
        params = self._params(
            name=name,
            about=about or None,
            aboutEmoji=about_emoji or None,
            avatar=avatar or None,
            familyName=family_name or None,
            mobileCoinAddress=mobile_coin_address or None,
            removeAvatar=True if remove_avatar else None,
        )
        await self._call("updateProfile", params)

    async def update_configuration(self, configuration: AccountConfiguration) -> None:
        await self._call("updateConfiguration", self._params(**configuration.to_params()))

    async def update_account(self, options: UpdateAccountOptions) -> AccountUpdateResult:
        """Update device name, username and discoverability.

        Daemon errors are reported in the result rather than raised.
        """
        params = self._params(**options.to_params())
        if not options.delete_username:
            params.pop("deleteUsername", None)
        try:
            result = await self._call("updateAccount", params) or {}
        except SignalError as e:
            self._logger.warning("account.update_failed", error=e.message)
            return AccountUpdateResult(success=False, error=e.message)
        return AccountUpdateResult(
            success=True,
            username=result.get("username"),
            username_link=result.get("usernameLink"),
        )

    async def set_pin(self, pin: str) -> None:
        if not pin:
            raise ValidationError("PIN is required", "pin")
        await self._call("setPin", self._params(pin=pin))

    async def remove_pin(self) -> None:
        await self._call("removePin", self._params())

    async def list_accounts(self) -> list[str]:
        return [acc["number"] for acc in await self.list_accounts_detailed() if acc.get("number")]

    async def list_accounts_detailed(self) -> list[dict[str, Any]]:
        result = await self._call("listAccounts", None)
        if isinstance(result, dict):
            return result.get("accounts") or []
        return result or []

    # -------------------------------------------------------------------------
    # Number change, payments, challenges
    # -------------------------------------------------------------------------

    async def start_change_number(
        self,
        number: str,
        voice: bool = False,
        captcha: str | None = None,
    ) -> None:
        validate_phone_number(number, "number")
        self._logger.info("account.change_number_started", voice=voice)
        await self._call("startChangeNumber", self._params(number=number, voice=voice, captcha=captcha or None))

    async def finish_change_number(
        self,
        number: str,
        verification_code: str,
        pin: str | None = None,
    ) -> None:
        validate_phone_number(number, "number")
        if not verification_code or not verification_code.strip():
            raise ValidationError("Verification code is required", "verification_code")
        params = self._params(number=number, verificationCode=verification_code, pin=pin or None)
        await self._call("finishChangeNumber", params)

    async def send_payment_notification(
        self,
        recipient: str,
        receipt: str,
        note: str | None = None,
    ) -> dict[str, Any]:
        if not receipt or not receipt.strip():
            raise ValidationError("Payment receipt is required", "receipt")
        target = self._target(recipient, single=True)
        params = self._params(receipt=receipt, note=note or None, **target)
        return await self._call("sendPaymentNotification", params)

    async def submit_rate_limit_challenge(self, challenge: str, captcha: str) -> RateLimitChallengeResult:
        result = await self._call("submitRateLimitChallenge", self._params(challenge=challenge, captcha=captcha)) or {}
        return RateLimitChallengeResult(
            success=bool(result.get("success", False)),
            retry_after=result.get("retryAfter"),
            message=result.get("message"),
        )

    # -------------------------------------------------------------------------
    # Sync with linked devices
    # -------------------------------------------------------------------------

    async def send_sync_request(self) -> None:
        await self._call("sendSyncRequest", self._params())

    async def send_contacts(self) -> None:
        await self._call("sendContacts", self._params())

    async def send_message_request_response(
        self,
        recipient: str,
        response: MessageRequestResponse,
    ) -> None:
        validate_recipient(recipient)
        await self._call("sendMessageRequestResponse", self._params(recipient=recipient, type=response))

    async def get_version(self) -> dict[str, Any]:
        return await self._call("version", None)


__all__ = ["AccountManager"]
