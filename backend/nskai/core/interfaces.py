"""
Service Contracts and Interfaces.

Collaborators that talk to external providers are passed into services through
these protocols so business rules can run against in-memory fakes.
"""

from typing import Any, Protocol


class IdentityMirror(Protocol):
    """Writes user state back to the identity provider's public metadata."""

    async def update_public_metadata(self, clerk_id: str, public_metadata: dict[str, Any]) -> None:
        """Merge ``public_metadata`` into the provider-side user record."""
        ...

    async def get_user(self, clerk_id: str) -> dict[str, Any]:
        """Fetch the provider-side user record."""
        ...


class Notifier(Protocol):
    """Transactional email sender."""

    async def send_tutor_approved(self, *, email: str, name: str) -> None:
        ...

    async def send_purchase_confirmation(
        self, *, email: str, name: str, course_title: str, amount: int, course_id: str
    ) -> None:
        ...

    async def send_welcome(self, *, email: str, name: str, role: str) -> None:
        ...
