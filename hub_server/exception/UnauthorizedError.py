class UnauthorizedError(Exception):
    """Raised when a bearer token is missing, malformed, expired or badly signed.

    REST routes answer with 401; the live channel refuses the handshake.
    """
    def __init__(self, message='Unauthorized'):
        super().__init__(message)
