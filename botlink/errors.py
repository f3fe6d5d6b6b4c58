class BotlinkError(RuntimeError):
    """Base error for botlink."""
    pass


class TransportError(BotlinkError):
    """Raised (or set on a future) when a transport operation fails.

    The message is the transport's error string; callers classify it by
    substring, e.g. 'disconnected' or 'socket not found'.
    """
    pass


class UnknownCommandError(BotlinkError, ValueError):
    """Raised when a command name, type or parameter is not supported."""
    def __init__(self, message, command=None):
        super().__init__(message)
        self.command = command
