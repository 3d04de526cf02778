# kalbook/health.py
from fastapi import APIRouter, Depends

from kalbook.config import Settings, get_settings
from kalbook.dependencies.services import uses_mock_store

router = APIRouter()

@router.get("/mcp/info")
def mcp_info():
    return {"status": "ok", "transport": "streamable-http", "path": "/mcp"}

@router.get("/mcp/health")
def mcp_health(settings: Settings = Depends(get_settings)):
    return {"ok": True, "store": "mock" if uses_mock_store(settings) else "http"}
