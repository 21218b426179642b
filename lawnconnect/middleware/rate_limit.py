"""
Rate limiting por endpoint usando el limiter de slowapi guardado en app.state
"""
from typing import Optional

from fastapi import Request, HTTPException
from limits import parse
from slowapi.util import get_remote_address

def apply_rate_limit(request: Request, limit: str, scope: Optional[str] = None):
    """
    Consume una petición del cupo `limit` ("5/minute") para la IP del cliente.
    El cupo es por ruta salvo que se indique otro `scope`.

    Si el limiter no está configurado (por ejemplo, en tests), no hace nada.
    """
    limiter = getattr(request.app.state, "limiter", None)
    if limiter is None:
        return

    item = parse(limit)
    key = get_remote_address(request)
    # slowapi solo expone el límite como decorador (que exige el parámetro
    # request en la firma); para aplicarlo dentro del handler se usa su
    # estrategia de `limits`. hit() devuelve False cuando el cupo está agotado
    if not limiter._limiter.hit(item, scope or request.url.path, key):
        raise HTTPException(
            status_code=429,
            detail=f"Demasiadas solicitudes. Límite: {limit}. Intenta más tarde."
        )
