from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional
import logging

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError, ExpiredSignatureError
from passlib.context import CryptContext

from .errors import AppError, ErrorKind
from .schemas.user import Role

logger = logging.getLogger(__name__)

ALGO = "HS256"
pwd = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(plain: str) -> str:
    return pwd.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd.verify(plain, hashed)


# ---------- Tokens ----------

class TokenErrorReason(str, Enum):
    malformed = "malformed"
    invalid_signature = "invalid_signature"
    expired = "expired"


class TokenError(Exception):
    def __init__(self, reason: TokenErrorReason):
        super().__init__(reason.value)
        self.reason = reason


class TokenIssuer:
    """
    Emite y verifica JWT firmados con HS256 que llevan el id de usuario y su rol.
    La clave se inyecta al construirlo (una sola vez, al arrancar la app).
    """

    def __init__(self, secret: str, expires_hours: int = 24):
        if not secret:
            raise ValueError("JWT secret vacío")
        self._secret = secret
        self.expires_hours = expires_hours

    def issue(self, user_id: str, role: Role | str, expires_delta: Optional[timedelta] = None) -> str:
        now = datetime.utcnow()
        expire = now + (expires_delta if expires_delta is not None else timedelta(hours=self.expires_hours))
        payload = {
            "sub": str(user_id),
            "role": Role(role).value,
            "iat": now,
            "exp": expire,
        }
        return jwt.encode(payload, self._secret, algorithm=ALGO)

    def verify(self, token: str) -> tuple[str, Role]:
        # Primero la estructura: si no se puede leer ni sin verificar, está mal formado
        try:
            jwt.get_unverified_claims(token)
        except JWTError:
            raise TokenError(TokenErrorReason.malformed)

        try:
            claims = jwt.decode(token, self._secret, algorithms=[ALGO])
        except ExpiredSignatureError:
            raise TokenError(TokenErrorReason.expired)
        except JWTError:
            raise TokenError(TokenErrorReason.invalid_signature)

        sub = claims.get("sub")
        try:
            role = Role(claims.get("role"))
        except ValueError:
            raise TokenError(TokenErrorReason.malformed)
        if not sub:
            raise TokenError(TokenErrorReason.malformed)
        return str(sub), role


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


# ---------- Autorización ----------

@dataclass(frozen=True)
class Principal:
    """Identidad verificada de la petición en curso."""
    user_id: str
    role: Role


async def get_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> Principal:
    # HTTPBearer(auto_error=False) devuelve None si falta la cabecera o no es "Bearer <token>"
    if credentials is None or not credentials.credentials:
        raise AppError(ErrorKind.unauthenticated, "Falta la cabecera Authorization: Bearer <token>")
    try:
        user_id, role = tokens.verify(credentials.credentials)
    except TokenError as e:
        logger.info(f"Token rechazado ({e.reason.value}) en {request.url.path}")
        if e.reason == TokenErrorReason.expired:
            raise AppError(ErrorKind.unauthenticated, "Token expirado")
        raise AppError(ErrorKind.unauthenticated, "Token inválido")
    principal = Principal(user_id=user_id, role=role)
    request.state.principal = principal
    return principal


def require_roles(*roles: Role):
    """
    Dependencia que exige un token válido con alguno de los roles dados.
    Uso: principal: Principal = Depends(require_roles(Role.mower))
    """
    allowed = frozenset(roles)

    async def _dependency(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in allowed:
            raise AppError(ErrorKind.forbidden, "Acceso denegado: privilegios insuficientes")
        return principal

    return _dependency
