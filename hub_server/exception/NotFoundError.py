class NotFoundError(Exception):
    """Raised when a resource is absent or not visible to the caller.

    Conversations a caller does not participate in are reported with this
    error too, so callers cannot tell them apart from missing ones.
    """
    def __init__(self, message='Not found'):
        super().__init__(message)
