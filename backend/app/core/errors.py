"""Domain errors raised by services and translated to HTTP status codes by routers."""


class ConversationNotFoundError(LookupError):
    pass


class MessageNotFoundError(LookupError):
    pass


class NotAParticipantError(PermissionError):
    """The named user is neither the creator nor the buyer of the conversation."""


class DuplicateReportError(Exception):
    """The reporter already flagged this message."""
