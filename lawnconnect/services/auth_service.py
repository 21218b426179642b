from datetime import datetime, timedelta
from typing import Any, Dict, Tuple
import hashlib
import logging
import secrets

from fastapi import Depends

from ..config import Settings, get_settings
from ..errors import AppError, ErrorKind
from ..repositories.users import UserRepository, get_user_repository
from ..schemas.user import Role
from ..security import TokenIssuer, get_token_issuer, hash_password, verify_password
from .email import EmailService, get_email_service

logger = logging.getLogger(__name__)

REGISTRABLE_ROLES = {Role.customer, Role.mower}
INVALID_CREDENTIALS = "Email o contraseña incorrectos"
INVALID_RESET_TOKEN = "Token inválido o expirado"


def _hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class AuthService:
    def __init__(self, users: UserRepository, tokens: TokenIssuer, email: EmailService, settings: Settings):
        self.users = users
        self.tokens = tokens
        self.email = email
        self.settings = settings

    async def register(self, name: str, email: str, password: str, role: str) -> Dict[str, Any]:
        try:
            role_enum = Role(role)
        except ValueError:
            role_enum = None
        if role_enum not in REGISTRABLE_ROLES:
            raise AppError(ErrorKind.invalid_input, "El rol debe ser customer o mower")

        email = email.lower()
        if await self.users.get_by_email(email):
            raise AppError(ErrorKind.duplicate, "Ya existe un usuario con este email")

        now = datetime.utcnow()
        doc: Dict[str, Any] = {
            "name": name,
            "email": email,
            "password_hash": hash_password(password),
            "role": role_enum.value,
            "is_verified": False,
            "created_at": now,
            "updated_at": now,
        }
        if role_enum == Role.mower:
            # Los mowers necesitan aprobación de un admin antes de aparecer como verificados
            doc["is_approved"] = False
            doc["is_available"] = True

        created = await self.users.create(doc)
        logger.info(f"Usuario registrado: {email} ({role_enum.value})")
        return created

    async def login(self, email: str, password: str) -> Tuple[Dict[str, Any], str]:
        user = await self.users.get_by_email(email.lower())
        if not user or not verify_password(password, user.get("password_hash", "")):
            raise AppError(ErrorKind.unauthenticated, INVALID_CREDENTIALS)
        token = self.tokens.issue(str(user["_id"]), user["role"])
        logger.info(f"Login correcto: {user['email']}")
        return user, token

    async def forgot_password(self, email: str) -> None:
        """Nunca revela si el email existe: siempre termina sin error para el cliente."""
        user = await self.users.get_by_email(email.lower())
        if not user:
            logger.info(f"Solicitud de reseteo para email inexistente: {email}")
            return

        token = secrets.token_urlsafe(32)
        expires_minutes = self.settings.reset_token_expires_minutes
        await self.users.update(user["_id"], {
            "reset_token_hash": _hash_reset_token(token),
            "reset_token_expires_at": datetime.utcnow() + timedelta(minutes=expires_minutes),
            "updated_at": datetime.utcnow(),
        })

        reset_url = f"{self.settings.reset_password_url}?token={token}"
        try:
            await self.email.send(user["email"], "Restablecer contraseña", "password-reset.html", {
                "name": user.get("name", ""),
                "reset_url": reset_url,
                "expires_minutes": expires_minutes,
            })
        except Exception as e:
            logger.warning(f"No se pudo enviar el email de reseteo a {user['email']}: {e}", exc_info=True)

    async def reset_password(self, token: str, new_password: str) -> None:
        user = await self.users.get_by_reset_token_hash(_hash_reset_token(token))
        if not user:
            raise AppError(ErrorKind.unauthenticated, INVALID_RESET_TOKEN)
        expires_at = user.get("reset_token_expires_at")
        if not expires_at or datetime.utcnow() > expires_at:
            raise AppError(ErrorKind.unauthenticated, INVALID_RESET_TOKEN)

        await self.users.update(user["_id"], {
            "password_hash": hash_password(new_password),
            "reset_token_hash": None,
            "reset_token_expires_at": None,
            "updated_at": datetime.utcnow(),
        })
        logger.info(f"Contraseña restablecida para {user['email']}")


async def get_auth_service(
    users: UserRepository = Depends(get_user_repository),
    tokens: TokenIssuer = Depends(get_token_issuer),
    email: EmailService = Depends(get_email_service),
) -> AuthService:
    return AuthService(users, tokens, email, get_settings())
