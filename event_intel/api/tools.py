"""
JSON-RPC tool endpoint.

Speaks the subset of MCP needed by agents: ``initialize``, ``tools/list``
and ``tools/call``. Authentication metadata travels inside the call params
(``_meta`` or ``metadata``), never in HTTP headers.
"""

from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from event_intel.core.exceptions import InvalidInputError
from event_intel.core.logging import get_logger
from event_intel.tools.dispatch import ToolDispatcher

logger = get_logger(__name__)

router = APIRouter(tags=["tools"])

SERVER_NAME = "platform-event-intelligence"
SERVER_VERSION = "0.1.0"
PROTOCOL_VERSION = "2024-11-05"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


def _result(request_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def _error(request_id: Any, code: int, message: str, data: Optional[Any] = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": request_id, "error": error}


def _get_dispatcher(request: Request) -> ToolDispatcher:
    return request.app.state.tool_dispatcher


@router.post("/mcp")
async def mcp_endpoint(request: Request) -> JSONResponse:
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(_error(None, PARSE_ERROR, "Parse error"))

    if not isinstance(body, dict) or body.get("jsonrpc") != "2.0" or not isinstance(body.get("method"), str):
        request_id = body.get("id") if isinstance(body, dict) else None
        return JSONResponse(_error(request_id, INVALID_REQUEST, "Invalid request"))

    request_id = body.get("id")
    method = body["method"]
    params = body.get("params") or {}
    if not isinstance(params, dict):
        return JSONResponse(_error(request_id, INVALID_PARAMS, "params must be an object"))

    if method == "initialize":
        return JSONResponse(
            _result(
                request_id,
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
                    "capabilities": {"tools": {}},
                },
            )
        )

    if method == "tools/list":
        return JSONResponse(_result(request_id, {"tools": _get_dispatcher(request).list_tools()}))

    if method != "tools/call":
        return JSONResponse(_error(request_id, METHOD_NOT_FOUND, f"Method not found: {method}"))

    name = params.get("name")
    arguments = params.get("arguments") or {}
    metadata = params.get("_meta") or params.get("metadata")
    if not isinstance(name, str) or not isinstance(arguments, dict):
        return JSONResponse(_error(request_id, INVALID_PARAMS, "tools/call requires name and arguments"))

    try:
        result = await _get_dispatcher(request).call_tool(
            name,
            arguments,
            metadata if isinstance(metadata, dict) else None,
            request_id=getattr(request.state, "request_id", None),
        )
    except ValidationError as exc:
        return JSONResponse(
            _error(request_id, INVALID_PARAMS, "Invalid arguments", exc.errors(include_url=False, include_context=False))
        )
    except InvalidInputError as exc:
        return JSONResponse(_error(request_id, INVALID_PARAMS, exc.message, exc.details or None))
    except Exception as exc:
        logger.error(f"Unhandled tool error: {type(exc).__name__}: {exc}", exc_info=True)
        return JSONResponse(_error(request_id, INTERNAL_ERROR, "Internal error"))

    return JSONResponse(_result(request_id, result))


