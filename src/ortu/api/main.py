from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Request
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from ortu.errors import CommandError
from ortu.services.history_service import HistoryService


class CategoryRequest(BaseModel):
    category: str


class GroupRequest(BaseModel):
    name: str


class RenameRequest(BaseModel):
    old_name: str
    new_name: str


class GroupFileRequest(BaseModel):
    name: str
    path: str


class PathRequest(BaseModel):
    path: str


class BackupRequest(BaseModel):
    path: str
    groups: Optional[List[str]] = None


class RestoreRequest(BaseModel):
    path: str
    mode: str = "merge"


async def _call(fn: Callable[..., Any], *args: Any) -> Dict[str, Any]:
    try:
        await run_in_threadpool(fn, *args)
        return {"ok": True}
    except CommandError as e:
        return {"error": str(e)}


async def _body(request: Request, model: type) -> Any:
    # malformed JSON and failed validation both surface as ValueError
    payload = await request.json()
    return model.model_validate(payload)


def create_app(service: HistoryService) -> FastAPI:
    app = FastAPI(title="Ortu")

    @app.get("/")
    def root():
        return "running"

    @app.get("/history")
    async def get_history(search: Optional[str] = None):
        try:
            items = await run_in_threadpool(service.get_history, search)
        except CommandError as e:
            return {"error": str(e)}
        return {"ok": True, "items": [item.model_dump(mode="json") for item in items]}

    @app.delete("/history/{item_id}")
    async def delete_entry(item_id: int):
        return await _call(service.delete_entry, item_id)

    @app.post("/history/{item_id}/toggle_permanent")
    async def toggle_permanent(item_id: int):
        return await _call(service.toggle_permanent, item_id)

    @app.post("/history/{item_id}/category")
    async def set_category(item_id: int, request: Request):
        try:
            data = await _body(request, CategoryRequest)
        except ValueError as e:
            return {"error": str(e)}
        return await _call(service.set_category, item_id, data.category)

    @app.post("/history/{item_id}/groups")
    async def add_to_group(item_id: int, request: Request):
        try:
            data = await _body(request, GroupRequest)
        except ValueError as e:
            return {"error": str(e)}
        return await _call(service.add_to_group, item_id, data.name)

    # group names may contain "/" ("Shell / OS")
    @app.delete("/history/{item_id}/groups/{name:path}")
    async def remove_from_group(item_id: int, name: str):
        return await _call(service.remove_from_group, item_id, name)

    @app.get("/categories")
    async def get_categories():
        try:
            names = await run_in_threadpool(service.get_categories)
        except CommandError as e:
            return {"error": str(e)}
        return {"ok": True, "categories": names}

    @app.post("/groups")
    async def create_group(request: Request):
        try:
            data = await _body(request, GroupRequest)
        except ValueError as e:
            return {"error": str(e)}
        return await _call(service.create_group, data.name)

    @app.delete("/groups/{name:path}")
    async def delete_group(name: str):
        return await _call(service.delete_group, name)

    @app.post("/groups/rename")
    async def rename_group(request: Request):
        try:
            data = await _body(request, RenameRequest)
        except ValueError as e:
            return {"error": str(e)}
        return await _call(service.rename_group, data.old_name, data.new_name)

    @app.post("/groups/export")
    async def export_group(request: Request):
        try:
            data = await _body(request, GroupFileRequest)
        except ValueError as e:
            return {"error": str(e)}
        return await _call(service.export_group, data.name, data.path)

    @app.post("/groups/import")
    async def import_group(request: Request):
        try:
            data = await _body(request, GroupFileRequest)
        except ValueError as e:
            return {"error": str(e)}
        return await _call(service.import_group, data.name, data.path)

    @app.post("/export_all_txt")
    async def export_all_txt(request: Request):
        try:
            data = await _body(request, PathRequest)
        except ValueError as e:
            return {"error": str(e)}
        return await _call(service.export_all_txt, data.path)

    @app.post("/backup")
    async def backup_data(request: Request):
        try:
            data = await _body(request, BackupRequest)
        except ValueError as e:
            return {"error": str(e)}
        return await _call(service.backup_data, data.path, data.groups)

    @app.post("/restore")
    async def restore_data(request: Request):
        try:
            data = await _body(request, RestoreRequest)
        except ValueError as e:
            return {"error": str(e)}
        return await _call(service.restore_data, data.path, data.mode)

    @app.post("/cleanup")
    async def manual_cleanup():
        return await _call(service.manual_cleanup)

    return app


def serve(service: HistoryService, host: str = "127.0.0.1", port: int = 3001) -> None:
    uvicorn.run(create_app(service), host=host, port=port)
