"""Exceptions raised by bot services."""

from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base exception for service layer failures."""
    pass


class ValidationError(ServiceError):
    """Raised when input fails validation."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class ResourceNotFoundError(ServiceError):
    """Raised when a requested resource does not exist."""

    def __init__(self, resource_type: str, identifier: str):
        self.resource_type = resource_type
        self.identifier = identifier
        super().__init__(f"{resource_type} not found: {identifier}")


class DuplicateResourceError(ServiceError):
    """Raised when creating a resource that already exists."""

    def __init__(self, resource_type: str, identifier: str):
        self.resource_type = resource_type
        self.identifier = identifier
        super().__init__(f"{resource_type} already exists: {identifier}")


class ConfigMissingError(ServiceError):
    """Raised when a guild's configuration, or its channel, can no longer be resolved."""

    def __init__(
        self,
        guild_id: Optional[str] = None,
        detail: str = "guild is not configured",
        channel_id: Optional[str] = None
    ):
        self.guild_id = guild_id
        self.channel_id = channel_id
        scope = f"Guild {guild_id}" if guild_id is not None else f"Channel {channel_id}"
        super().__init__(f"{scope}: {detail}")


class SourceUnavailableError(ServiceError):
    """Raised when the daily challenge or its metadata cannot be fetched."""
    pass


class MemberFetchError(ServiceError):
    """Raised when one member's submission history cannot be fetched."""

    def __init__(self, username: str, message: str):
        self.username = username
        super().__init__(f"Failed to fetch submissions for {username}: {message}")


class PermissionDeniedError(ServiceError):
    """Raised when the bot may not post to a channel."""

    def __init__(self, channel_id: str, message: str = "missing access"):
        self.channel_id = channel_id
        super().__init__(f"Cannot post in channel {channel_id}: {message}")
