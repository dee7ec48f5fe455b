# movievault/core/responses.py
from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def success(data: Any = None, message: str = "Success", status_code: int = 200) -> JSONResponse:
    body = {
        "success": True,
        "message": message,
        "data": data,
        "timestamp": _now(),
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def error(message: str = "Error", status_code: int = 500, detail: Optional[str] = None) -> JSONResponse:
    body: Dict[str, Any] = {
        "success": False,
        "message": message,
        "timestamp": _now(),
    }
    if detail is not None:
        body["error"] = detail
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def paginated(
    data: List[Any],
    page: int,
    limit: int,
    total: int,
    message: str = "Success",
) -> JSONResponse:
    body = {
        "success": True,
        "message": message,
        "data": data,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages(total, limit),
        },
        "timestamp": _now(),
    }
    return JSONResponse(status_code=200, content=jsonable_encoder(body))
