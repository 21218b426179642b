from pydantic import BaseModel, ConfigDict, EmailStr, Field
from enum import Enum
from typing import Literal, Optional
from datetime import datetime

class Role(str, Enum):
    customer    = "customer"
    mower       = "mower"
    admin       = "admin"
    super_admin = "super_admin"

# Roles que se pueden elegir al registrarse; los administradores se crean aparte
SelfServiceRole = Literal["customer", "mower"]

class Register(BaseModel):
    name: str = Field(..., min_length=2, max_length=80, description="Nombre completo del usuario")
    email: EmailStr = Field(..., description="Email válido")
    password: str = Field(..., min_length=6, max_length=72, description="Contraseña (mín. 6 caracteres)")
    role: SelfServiceRole = Field(..., description="customer o mower")

class Login(BaseModel):
    email: EmailStr = Field(..., description="Email del usuario")
    password: str = Field(..., min_length=1, description="Contraseña")

class ForgotPassword(BaseModel):
    email: EmailStr

class ResetPassword(BaseModel):
    # Los clientes envían "newPassword"; se acepta también "new_password"
    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(..., min_length=1)
    new_password: str = Field(..., alias="newPassword", min_length=6, max_length=72)

class UserOut(BaseModel):
    id: str
    name: str
    email: EmailStr
    role: Role
    is_verified: bool = False
    # Solo relevantes para mowers
    is_approved: Optional[bool] = None
    is_available: Optional[bool] = None
    phone_number: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class LoginOut(BaseModel):
    user: UserOut
    token: str
    token_type: str = "bearer"
