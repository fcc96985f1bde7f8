"""Bearer credential verification (HS256 JWT issued by the identity service)"""
from typing import Any, Dict, Optional, TYPE_CHECKING

import jwt

from ..config.settings import settings
from ..domain.errors import InvalidCredentialError
from ..domain.models import Principal
from .logger import get_logger

if TYPE_CHECKING:
    from ..repositories.principal_repo import PrincipalRepository

logger = get_logger(__name__)


class CredentialVerifier:
    """Verifies a bearer token and resolves it to a stored principal"""

    def __init__(
        self,
        principal_repo: "PrincipalRepository" = None,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None
    ):
        self._principal_repo = principal_repo
        self._secret = secret or settings.jwt_secret
        self._algorithm = algorithm or settings.jwt_algorithm

    @property
    def principal_repo(self) -> "PrincipalRepository":
        if self._principal_repo is None:
            from ..repositories.principal_repo import PrincipalRepository
            self._principal_repo = PrincipalRepository()
        return self._principal_repo

    def decode(self, token: str) -> Dict[str, Any]:
        """
        Validate signature and expiry.

        Raises:
            InvalidCredentialError: token missing, malformed or expired
        """
        if not token:
            raise InvalidCredentialError("Token is missing")

        if token.startswith("Bearer "):
            token = token[7:]

        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                leeway=settings.jwt_leeway_seconds,
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            logger.info("Token expired")
            raise InvalidCredentialError("Token has expired")
        except jwt.PyJWTError as e:
            logger.warning(f"JWT validation error: {e}")
            raise InvalidCredentialError("Invalid token")

    def verify(self, token: str) -> Principal:
        """Resolve a bearer token to its principal"""
        claims = self.decode(token)
        principal = self.principal_repo.get(str(claims["sub"]))
        if principal is None:
            raise InvalidCredentialError("Unknown principal")
        if not principal.profile.is_active:
            raise InvalidCredentialError("Account is inactive")
        return principal


_verifier: Optional[CredentialVerifier] = None


def get_credential_verifier() -> CredentialVerifier:
    """Get global verifier instance"""
    global _verifier
    if _verifier is None:
        _verifier = CredentialVerifier()
    return _verifier
