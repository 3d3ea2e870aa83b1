from jose import jwt, JWTError
from datetime import timedelta, datetime, timezone
import time
from hub_server.exception.UnauthorizedError import UnauthorizedError

MALFORMED_TOKEN = "Malformed or missing token. Please provide a valid JWT token in the Authorization header."
EXPIRED_TOKEN = "Token expired. Please login again or refresh your session."


class AuthSecurity:
    """Bearer token verification shared by REST routes and the live channel.

    Tokens are issued by the identity service; this class only needs the
    shared secret to verify them. ``encode_token`` exists for operators and
    tests.
    """
    secret_key = None
    algorithm = 'HS256'
    access_token_expire_minutes = 7 * 24 * 60
    identity_claim = 'user_id'

    @classmethod
    def configure(cls, secret_key, algorithm='HS256', access_token_expire_minutes=7*24*60):
        cls.secret_key = secret_key
        cls.algorithm = algorithm
        cls.access_token_expire_minutes = access_token_expire_minutes

    @classmethod
    def encode_token(cls, data: dict, expires_delta: timedelta = None) -> str:
        to_encode = data.copy()
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=cls.access_token_expire_minutes))
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, cls.secret_key, algorithm=cls.algorithm)

    @classmethod
    def decode_token(cls, token: str) -> dict:
        # A well-formed JWT has exactly two dots
        if not token or token.count('.') != 2:
            raise UnauthorizedError(MALFORMED_TOKEN)
        try:
            payload = jwt.decode(token, cls.secret_key, algorithms=[cls.algorithm])
        except JWTError as e:
            msg = str(e)
            if 'Signature has expired' in msg:
                raise UnauthorizedError(EXPIRED_TOKEN)
            elif 'Not enough segments' in msg or 'Invalid header string' in msg:
                raise UnauthorizedError(MALFORMED_TOKEN)
            elif 'Signature verification failed' in msg:
                raise UnauthorizedError("Invalid token signature. Please login again or contact support if the problem persists.")
            raise UnauthorizedError(f"Invalid token: {msg}. Please check your authentication and try again.")

        exp = payload.get('exp')
        if exp is not None and int(float(exp)) < int(time.time()):
            raise UnauthorizedError(EXPIRED_TOKEN)
        return payload

    @classmethod
    def resolve_user_id(cls, token: str) -> str:
        """Verify a bearer token and return the caller's user id."""
        payload = cls.decode_token(token)
        user_id = payload.get(cls.identity_claim)
        if not user_id:
            raise UnauthorizedError("Invalid token: missing user identity.")
        return str(user_id)


def extract_bearer(header_value):
    """Return the token part of an ``Authorization: Bearer <token>`` header."""
    if not header_value or not header_value.startswith('Bearer '):
        return None
    return header_value.split(' ', 1)[1].strip() or None


def get_auth_payload(request):
    """
    Extracts and decodes the Bearer token from the Authorization header in the request.
    Raises UnauthorizedError if missing or invalid.
    Returns the decoded payload with ``user_id`` normalized to a string.
    """
    token = extract_bearer(request.headers.get('Authorization'))
    if not token:
        raise UnauthorizedError('Missing or invalid token')
    payload = AuthSecurity.decode_token(token)
    user_id = payload.get(AuthSecurity.identity_claim)
    if not user_id:
        raise UnauthorizedError("Invalid token: missing user identity.")
    payload[AuthSecurity.identity_claim] = str(user_id)
    return payload
