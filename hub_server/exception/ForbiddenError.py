class ForbiddenError(Exception):
    """Raised when an identified participant attempts a disallowed action."""
    def __init__(self, message='Forbidden'):
        super().__init__(message)
