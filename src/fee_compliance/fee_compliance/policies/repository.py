from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import PolicyKey, ReminderChannelSettings, TermPolicy


class PolicyRepository(Protocol):
    """Configuration repository injected into the resolver and processors."""

    def get_policy(self, key: PolicyKey) -> Optional[TermPolicy]:
        """Return the active policy for the key, if any."""

        raise NotImplementedError

    def list_policies(self) -> Sequence[TermPolicy]:
        raise NotImplementedError

    def upsert_policy(self, policy: TermPolicy) -> None:
        """Replace the policy stored under ``policy.key`` (one per key)."""

        raise NotImplementedError

    def delete_policy(self, key: PolicyKey) -> bool:
        raise NotImplementedError

    def get_channel_settings(self) -> ReminderChannelSettings:
        raise NotImplementedError

    def save_channel_settings(self, settings: ReminderChannelSettings) -> None:
        raise NotImplementedError
