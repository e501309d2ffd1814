"""
app/api/admin_usergroups.py

Purpose: Admin panel usergroups endpoints
"""

from fastapi import APIRouter, Depends

from app.api.deps import require_admin
from app.schemas.usergroups import CreateUsergroupRequest, UpdateUsergroupRequest
from app.services import usergroup_service
from utils.serialization import to_public

router = APIRouter(prefix="/admin/usergroups", dependencies=[Depends(require_admin)])


@router.get("/new")
async def add_form():
    """Setting schemas by category and groups for the parent select."""
    return await usergroup_service.add_form_data()


@router.post("")
async def create_usergroup(body: CreateUsergroupRequest):
    group = await usergroup_service.create(body.short_name, body.parent_group, body.settings)
    return {"usergroup": to_public(group)}


@router.get("/{group_id}")
async def show_usergroup(group_id: str):
    data = await usergroup_service.show(group_id)
    data["usergroup"] = to_public(data["usergroup"])
    return data


@router.put("/{group_id}")
async def update_usergroup(group_id: str, body: UpdateUsergroupRequest):
    group = await usergroup_service.update(group_id, body.short_name, body.parent_group, body.settings)
    return {"usergroup": to_public(group)}
