"""
Security utilities for signing and decoding credential JWTs
"""
from typing import Dict, Any
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTClaimsError, JWTError

from mcp_gateway.errors import (
    CredentialExpiredError,
    InvalidSignatureError,
    MalformedCredentialError,
)

REQUIRED_CLAIMS = ("sub", "tenant", "jti", "iat", "exp")


def create_credential_token(claims: Dict[str, Any], secret: str, algorithm: str) -> str:
    """
    Create a signed JWT credential

    Args:
        claims: {sub, tenant, jti, iat, exp} with epoch-second timestamps
        secret: Server-held signing secret
        algorithm: JWS algorithm (HS256)

    Returns:
        Encoded JWT token
    """
    return jwt.encode(claims, secret, algorithm=algorithm)


def decode_credential_token(token: str, secret: str, algorithm: str) -> Dict[str, Any]:
    """
    Verify signature and time validity of a JWT credential

    Args:
        token: Encoded JWT
        secret: Server-held signing secret
        algorithm: The only algorithm accepted

    Returns:
        Decoded claims

    Raises:
        MalformedCredentialError: not a JWT, or required claims missing
        InvalidSignatureError: signature (or algorithm) does not verify
        CredentialExpiredError: exp is in the past
    """
    try:
        jwt.get_unverified_header(token)
    except JWTError:
        raise MalformedCredentialError()

    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except ExpiredSignatureError:
        raise CredentialExpiredError()
    except JWTClaimsError:
        raise MalformedCredentialError()
    except JWTError:
        raise InvalidSignatureError()

    for claim in REQUIRED_CLAIMS:
        if payload.get(claim) in (None, ""):
            raise MalformedCredentialError()

    return payload
