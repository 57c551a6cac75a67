"""
Response envelope and camelCase schema base
"""

from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Schema whose wire format is camelCase; also accepts snake_case input"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def success_response(
    data: Any,
    status_code: int = 200,
    extra: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """
    Build {success: true, data, ...extra}

    Keys in extra whose value is None are left out.
    """
    content: Dict[str, Any] = {"success": True, "data": jsonable_encoder(data)}
    for key, value in (extra or {}).items():
        if value is not None:
            content[key] = jsonable_encoder(value)
    return JSONResponse(status_code=status_code, content=content)


def error_response(
    message: str,
    status_code: int,
    code: Optional[str] = None,
    details: Any = None,
    warnings: Optional[list] = None
) -> JSONResponse:
    """Build {success: false, error, code?, details?, warnings?}"""
    content: Dict[str, Any] = {"success": False, "error": message}
    if code:
        content["code"] = code
    if details:
        content["details"] = jsonable_encoder(details)
    if warnings:
        content["warnings"] = warnings
    return JSONResponse(status_code=status_code, content=content)
