# lawnconnect/utils.py
from typing import Any, Dict, Optional
from bson import ObjectId
from datetime import datetime

from .errors import AppError, ErrorKind

def to_id(doc: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Convierte _id -> id (str) y todos los ObjectIds a strings.
    También convierte datetime a ISO format strings.
    Si doc es None, devuelve {}.
    """
    if doc is None:
        return {}
    d = dict(doc)

    if "_id" in d:
        d["id"] = str(d.pop("_id"))

    for key, value in d.items():
        if isinstance(value, ObjectId):
            d[key] = str(value)
        elif isinstance(value, datetime):
            d[key] = value.isoformat()
        elif isinstance(value, dict):
            d[key] = to_id(value)
        elif isinstance(value, list):
            d[key] = [
                str(item) if isinstance(item, ObjectId)
                else item.isoformat() if isinstance(item, datetime)
                else to_id(item) if isinstance(item, dict)
                else item
                for item in value
            ]

    return d

def to_object_id(value: str, field_name: str = "id") -> ObjectId:
    """Convierte un string a ObjectId; si no es válido -> invalid_input (400)."""
    if not ObjectId.is_valid(value):
        raise AppError(ErrorKind.invalid_input, f"{field_name} inválido: {value}")
    return ObjectId(value)
