"""Read-only HTML view of the in-memory booking store."""
from __future__ import annotations

import html
import json
from typing import Any, Dict, Iterable, List, Mapping

from fastapi import APIRouter
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from kalbook.schemas.scheduling import Service, Worker
from kalbook.services.mock_store import get_mock_store

router = APIRouter()


def _stringify(value: Any) -> str:
    """Return a JSON-friendly string representation for table cells."""
    if value is None:
        return ""
    if isinstance(value, (str, int, float, bool)):
        return str(value)
    return json.dumps(value, default=str)


def _build_table(title: str, rows: Iterable[Mapping[str, Any]]) -> str:
    row_list: List[Dict[str, Any]] = [dict(row) for row in rows]
    parts = [f"<section><h2>{html.escape(title)}</h2>"]
    if not row_list:
        parts.append("<p>No records found.</p></section>")
        return "".join(parts)

    columns: List[str] = []
    for row in row_list:
        for key in row:
            if key not in columns:
                columns.append(key)

    header = "".join(f"<th>{html.escape(column)}</th>" for column in columns)
    body_rows = [
        "<tr>"
        + "".join(f"<td>{html.escape(_stringify(row.get(column)))}</td>" for column in columns)
        + "</tr>"
        for row in row_list
    ]
    parts.append(
        "<table><thead><tr>" + header + "</tr></thead><tbody>" + "".join(body_rows) + "</tbody></table>"
    )
    parts.append("</section>")
    return "".join(parts)


def _records(models: Iterable[BaseModel]) -> List[Dict[str, Any]]:
    return [model.model_dump(mode="json") for model in models]


def _service_rows(services: Iterable[Service]) -> List[Dict[str, Any]]:
    return [
        {
            "service_id": service.id,
            "name": service.name,
            "duration_minutes": service.duration_minutes,
            "price": service.price,
            "active": service.active,
            "group": service.is_group,
            "max_capacity": service.max_capacity,
        }
        for service in services
    ]


def _worker_rows(workers: Iterable[Worker]) -> List[Dict[str, Any]]:
    return [
        {
            "worker_id": worker.id,
            "name": worker.name,
            "active": worker.active,
            "services": sorted(worker.service_ids),
        }
        for worker in workers
    ]


@router.get("/mock-data", response_class=HTMLResponse)
async def view_mock_data() -> HTMLResponse:
    """Render the shared in-memory store as HTML tables."""
    store = get_mock_store()
    settings = await store.get_business_settings()

    sections = [
        _build_table("Business Settings", [settings.model_dump(mode="json")]),
        _build_table("Services", _service_rows(store.services.values())),
        _build_table("Workers", _worker_rows(store.workers.values())),
        _build_table("Customers", _records(store.customers.values())),
        _build_table("Appointments", _records(store.appointments.values())),
        _build_table("Reschedule Requests", _records(store.reschedule_requests.values())),
        _build_table("Activity Log", _records(store.activity)),
    ]

    sections_html = "".join(sections)
    html_content = f"""
    <html>
        <head>
            <title>Mock Data Overview</title>
            <style>
                body {{ font-family: Arial, sans-serif; margin: 2rem; }}
                h1 {{ text-align: center; }}
                section {{ margin-bottom: 2rem; }}
                table {{ border-collapse: collapse; width: 100%; }}
                th, td {{ border: 1px solid #ccc; padding: 0.5rem; text-align: left; }}
                th {{ background-color: #f0f0f0; }}
                tbody tr:nth-child(even) {{ background-color: #fafafa; }}
            </style>
        </head>
        <body>
            <h1>Mock Data Overview</h1>
            {sections_html}
        </body>
    </html>
    """

    return HTMLResponse(content=html_content)
