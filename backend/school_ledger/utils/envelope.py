from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def ok(data: Any = None, message: str = "OK") -> Dict[str, Any]:
    """Success envelope; the route's status_code decides 200 vs 201"""
    body: Dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = jsonable_encoder(data)
    return body


def error(message: str, status: int = 400, details: Optional[Dict[str, Any]] = None,
          headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    body: Dict[str, Any] = {"success": False, "message": message}
    if details:
        body["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status, content=body, headers=headers)
