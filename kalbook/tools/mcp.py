# kalbook/tools/mcp.py
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, HTTPException, Header, Depends
import logging
import os
import requests
from pydantic import BaseModel, Field

from kalbook.config import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter()

def require_api_key(x_api_key: Optional[str] = Header(None)):
    expected = os.getenv("KALBOOK_API_KEY")
    if expected and x_api_key != expected:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
    return True

_APPOINTMENT_ID = {"appointment_id": {"type": "string"}}
_REQUEST_ID = {"request_id": {"type": "string"}}

TOOLS: List[Dict[str, Any]] = [
    {
        "name": "availability.list",
        "description": "List bookable HH:MM start times for a service on a date.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "service_id": {"type": "string"},
                "date": {"type": "string", "format": "date"},
                "worker_id": {"type": "string"},
            },
            "required": ["service_id", "date"],
        },
    },
    {
        "name": "availability.dates",
        "description": "List the upcoming working dates within the booking horizon.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "horizon_days": {"type": "integer", "minimum": 1, "maximum": 365},
            },
        },
    },
    {
        "name": "availability.group",
        "description": "List upcoming group sessions of a service that still have free spots.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "service_id": {"type": "string"},
                "worker_id": {"type": "string"},
                "date_from": {"type": "string", "format": "date"},
                "date_to": {"type": "string", "format": "date"},
            },
            "required": ["service_id"],
        },
    },
    {
        "name": "appointments.book",
        "description": "Book an appointment; the slot is re-checked before it is committed.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "service_id": {"type": "string"},
                "worker_id": {"type": "string"},
                "start": {"type": "string", "format": "date-time"},
                "customer_id": {"type": "string"},
                "customer": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "email": {"type": "string", "format": "email"},
                        "phone": {"type": "string"},
                    },
                },
                "created_by": {"type": "string", "enum": ["customer", "admin"], "default": "customer"},
            },
            "required": ["service_id", "worker_id", "start"],
        },
    },
    {
        "name": "appointments.cancel",
        "description": "Cancel an appointment. Cancelling twice is a no-op.",
        "inputSchema": {
            "type": "object",
            "properties": {
                **_APPOINTMENT_ID,
                "created_by": {"type": "string", "enum": ["customer", "admin"], "default": "customer"},
            },
            "required": ["appointment_id"],
        },
    },
    {
        "name": "appointments.leave",
        "description": "Remove a customer from a group session.",
        "inputSchema": {
            "type": "object",
            "properties": {**_APPOINTMENT_ID, "customer_id": {"type": "string"}},
            "required": ["appointment_id", "customer_id"],
        },
    },
    {
        "name": "appointments.list",
        "description": "List appointments with optional worker/customer/date/status filters.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "worker_id": {"type": "string"},
                "customer_id": {"type": "string"},
                "service_id": {"type": "string"},
                "date_from": {"type": "string", "format": "date"},
                "date_to": {"type": "string", "format": "date"},
                "status": {"type": "string", "enum": ["created", "confirmed", "cancelled"]},
                "page": {"type": "integer", "minimum": 1, "default": 1},
                "page_size": {"type": "integer", "minimum": 1, "maximum": 100, "default": 20},
            },
        },
    },
    {
        "name": "reschedule.request",
        "description": "Ask to move an appointment; applied directly or queued for approval.",
        "inputSchema": {
            "type": "object",
            "properties": {
                **_APPOINTMENT_ID,
                "requested_start": {"type": "string", "format": "date-time"},
                "requested_end": {"type": "string", "format": "date-time"},
            },
            "required": ["appointment_id", "requested_start", "requested_end"],
        },
    },
    {
        "name": "reschedule.approve",
        "description": "Approve a pending reschedule request.",
        "inputSchema": {"type": "object", "properties": _REQUEST_ID, "required": ["request_id"]},
    },
    {
        "name": "reschedule.reject",
        "description": "Reject a pending reschedule request with an optional message.",
        "inputSchema": {
            "type": "object",
            "properties": {**_REQUEST_ID, "message": {"type": "string"}},
            "required": ["request_id"],
        },
    },
    {
        "name": "reschedule.pending",
        "description": "List pending reschedule requests, oldest first.",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "activity.list",
        "description": "List activity log entries, newest first.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "created_by": {"type": "string", "enum": ["customer", "admin"], "default": "customer"},
                "activity_type": {"type": "string"},
                "status": {"type": "string"},
                "customer_id": {"type": "string"},
                "date_from": {"type": "string", "format": "date"},
                "date_to": {"type": "string", "format": "date"},
                "page": {"type": "integer", "minimum": 1, "default": 1},
                "page_size": {"type": "integer", "minimum": 1, "maximum": 100, "default": 25},
            },
        },
    },
]

TOOL_ROUTES: Dict[str, str] = {
    "availability.list": "/tools/availability/list",
    "availability.dates": "/tools/availability/dates",
    "availability.group": "/tools/availability/group",
    "appointments.book": "/tools/appointment/book",
    "appointments.cancel": "/tools/appointment/cancel",
    "appointments.leave": "/tools/appointment/leave",
    "appointments.list": "/tools/appointment/list",
    "reschedule.request": "/tools/reschedule/request",
    "reschedule.approve": "/tools/reschedule/approve",
    "reschedule.reject": "/tools/reschedule/reject",
    "reschedule.pending": "/tools/reschedule/pending",
    "activity.list": "/tools/activity/list",
}

@router.get("/tools/list", dependencies=[Depends(require_api_key)])
def mcp_tools_list():
    return {"tools": TOOLS}

class ToolCall(BaseModel):
    name: str = Field(..., description="Tool name from /tools/list")
    arguments: Dict[str, Any] = Field(default_factory=dict)

def _self_base(settings: Settings) -> str:
    return str(settings.mcp_base_url).rstrip("/")

@router.post("/tools/call", dependencies=[Depends(require_api_key)])
def mcp_tools_call(call: ToolCall, settings: Settings = Depends(get_settings)):
    if call.name not in TOOL_ROUTES:
        raise HTTPException(status_code=404, detail=f"Unknown tool: {call.name}")
    url = f"{_self_base(settings)}{TOOL_ROUTES[call.name]}"
    headers = {"X-API-Key": os.getenv("KALBOOK_API_KEY")} if os.getenv("KALBOOK_API_KEY") else None
    logger.info("Proxying tool call %s to %s", call.name, url)
    try:
        resp = requests.post(url, json=call.arguments, timeout=30, headers=headers)
        resp.raise_for_status()
        return resp.json()
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else 500
        try:
            detail = e.response.json().get("detail") if e.response is not None else str(e)
        except ValueError:
            detail = e.response.text
        raise HTTPException(status_code=status, detail=detail)
    except requests.RequestException as e:
        raise HTTPException(status_code=502, detail=str(e))
