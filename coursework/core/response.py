from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel


def format_response(
    status_code: int,
    message: str,
    data: Any = None,
    errors: Optional[List[Dict[str, Any]]] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Envelope shared by every endpoint: {success, statusCode, message, data, meta?, errors?}."""
    response = {
        "success": 200 <= status_code < 300,
        "statusCode": status_code,
        "message": message,
        "data": data,
    }
    if errors is not None:
        response["errors"] = errors
    if meta:
        response["meta"] = meta
    return response


def serialize(schema: Type[BaseModel], obj: Any) -> Any:
    """Dump ORM rows or service dicts through a schema, camelCase on the wire."""
    if obj is None:
        return None
    if isinstance(obj, list):
        return [serialize(schema, item) for item in obj]
    return schema.model_validate(obj).model_dump(by_alias=True, mode="json")
