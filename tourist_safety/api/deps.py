"""
Shared helpers for the REST routers.
"""

from typing import Any, Dict, List, Union

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from tourist_safety.orchestrators.tracking import TrackingOrchestrator

def get_orchestrator(request: Request) -> TrackingOrchestrator:
    return request.app.state.orchestrator

def dump(obj: Union[BaseModel, List[BaseModel], None]) -> Any:
    """camelCase JSON 직렬화"""
    if obj is None:
        return None
    if isinstance(obj, list):
        return [o.model_dump(by_alias=True, mode="json") for o in obj]
    return obj.model_dump(by_alias=True, mode="json")

def ok(data: Any = None, status_code: int = 200, **extra: Any) -> JSONResponse:
    body: Dict[str, Any] = {"success": True}
    body.update(extra)
    if data is not None:
        body["data"] = data
    return JSONResponse(body, status_code=status_code)
