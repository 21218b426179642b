from fastapi import APIRouter, Depends, Request, status
import logging

from ..middleware.rate_limit import apply_rate_limit
from ..responses import json_success
from ..schemas.user import Register, Login, ForgotPassword, ResetPassword, UserOut, LoginOut
from ..services.auth_service import AuthService, get_auth_service
from ..utils import to_id

logger = logging.getLogger(__name__)

router = APIRouter()


def _user_out(doc: dict) -> UserOut:
    # model_validate ignora password_hash y los campos de reseteo
    return UserOut.model_validate(to_id(doc))


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(request: Request, payload: Register, auth: AuthService = Depends(get_auth_service)):
    # Rate limiting: máximo 5 registros por minuto por IP
    apply_rate_limit(request, "5/minute")
    user = await auth.register(payload.name, payload.email, payload.password, payload.role)
    return json_success("Usuario registrado correctamente", _user_out(user), status.HTTP_201_CREATED)


@router.post("/login")
async def login(request: Request, payload: Login, auth: AuthService = Depends(get_auth_service)):
    # Rate limiting: máximo 10 intentos de login por minuto por IP
    apply_rate_limit(request, "10/minute")
    user, token = await auth.login(payload.email, payload.password)
    return json_success("Login correcto", LoginOut(user=_user_out(user), token=token))


@router.post("/forgot-password")
async def forgot_password(request: Request, payload: ForgotPassword, auth: AuthService = Depends(get_auth_service)):
    apply_rate_limit(request, "5/minute")
    await auth.forgot_password(payload.email)
    # Misma respuesta exista o no el email
    return json_success("Si el email está registrado, recibirás un enlace para restablecer la contraseña")


@router.post("/reset-password")
async def reset_password(request: Request, payload: ResetPassword, auth: AuthService = Depends(get_auth_service)):
    apply_rate_limit(request, "10/minute")
    await auth.reset_password(payload.token, payload.new_password)
    return json_success("Contraseña restablecida correctamente")
