"""Exception hierarchy for the bot."""


class BotError(Exception):
    """Base exception for discord-linear-bot errors"""


class ConfigError(BotError):
    """Configuration is missing or invalid"""


class StoreError(BotError):
    """Sync store operation failed"""


class DuplicateMappingError(StoreError):
    """Thread or issue is already part of a mapping"""


class InvalidChannelTypeError(StoreError):
    """Channel type is not one of the known types"""


class DuplicateCommentError(StoreError):
    """Linear comment was already relayed"""


class LinearApiError(BotError):
    """Linear API request failed or returned errors"""


class AttachmentUploadError(LinearApiError):
    """Attachment download or upload failed"""


class SyncError(BotError):
    """A sync step could not be completed"""


class ReleaseError(BotError):
    """Release precondition or step failed"""
