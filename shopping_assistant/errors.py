"""Error taxonomy for the shopping assistant.

ConfigurationError, SessionNotInitializedError and InvalidInputError are the
caller's problem and propagate out of a turn. RemoteServiceError and
MalformedToolArgumentsError are absorbed inside the turn.
"""

from __future__ import annotations


class AssistantError(Exception):
    """Base class for all assistant errors."""


class ConfigurationError(AssistantError):
    """The credential is missing or was rejected by the remote service."""


class SessionNotInitializedError(AssistantError):
    """A turn was sent on a session whose remote chat was never established."""


class InvalidInputError(AssistantError):
    """A turn carried neither text nor a usable image."""


class RemoteServiceError(AssistantError):
    """The remote chat service failed or returned something unusable."""


class MalformedToolArgumentsError(AssistantError):
    """A tool call's arguments could not be parsed."""
