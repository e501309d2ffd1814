"""
app/services/usergroup_service.py

Purpose: Usergroups and their settings (admin panel)

- Setting schemas come from config (type, default, category, group, priority)
- Form data for the "new group" and "edit group" pages
- Group create/update with value validation against the schemas
- Effective settings with parent group inheritance
"""

import copy
import re
from typing import Optional, Dict, Any, List

from bson import ObjectId

from app.db import mongo
from app.core.config import settings
from app.core.exceptions import ClientError, ResourceNotFoundError
from app.core.logging import get_logger, LogContext
from utils import constants
from utils.validation_utils import parse_object_id

logger = get_logger(__name__)

SHORT_NAME_PATTERN = re.compile(r"^[a-z0-9_-]{2,64}$")

SETTING_TYPES = {
    "boolean": (bool,),
    "number": (int, float),
    "string": (str,),
}


def get_setting_schemas() -> Dict[str, Dict[str, Any]]:
    """Copy of the configured setting schemas."""
    return copy.deepcopy(settings.USERGROUP_SETTINGS)


def _group_schemas(schemas: Dict[str, Dict[str, Any]], key: str) -> Dict[str, List[Dict[str, Any]]]:
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for name, schema in schemas.items():
        grouped.setdefault(schema.get(key, "common"), []).append({"name": name, **schema})
    for items in grouped.values():
        items.sort(key=lambda item: (item.get("priority", 0), item["name"]))
    return grouped


async def list_groups() -> List[Dict[str, Any]]:
    return await mongo.get_usergroups_collection().find().sort("short_name", 1).to_list(length=None)


async def fetch_group(group_id: Any) -> Dict[str, Any]:
    oid = parse_object_id(group_id)
    group = await mongo.get_usergroups_collection().find_one({"_id": oid}) if oid else None
    if not group:
        raise ResourceNotFoundError("Usergroup not found")
    return group


async def add_form_data() -> Dict[str, Any]:
    """
    Data for the "new usergroup" form.

    Returns:
        {"setting_schemas": {category: [schema]}, "groups": [{"_id", "short_name"}]}
    """
    groups = await list_groups()
    return {
        "setting_schemas": _group_schemas(get_setting_schemas(), "category"),
        "groups": [{"_id": str(g["_id"]), "short_name": g["short_name"]} for g in groups],
    }


async def show(group_id: Any) -> Dict[str, Any]:
    """
    Data for the "edit usergroup" form.

    Every schema item carries the group's own value when it has one.

    Returns:
        {"usergroup", "setting_schemas": {group: [schema]}, "groups"}

    Raises:
        ResourceNotFoundError: Unknown group
    """
    group = await fetch_group(group_id)
    values = group.get("settings") or {}

    schemas = get_setting_schemas()
    for name, schema in schemas.items():
        if name in values:
            schema["value"] = values[name]

    groups = await list_groups()
    return {
        "usergroup": group,
        "setting_schemas": _group_schemas(schemas, "group"),
        "groups": [
            {"_id": str(g["_id"]), "short_name": g["short_name"]}
            for g in groups if g["_id"] != group["_id"]
        ],
    }


def validate_settings_values(values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Checks setting values against their schemas.

    Raises:
        ClientError: Unknown setting or value of a wrong type
    """
    schemas = settings.USERGROUP_SETTINGS
    errors = {}

    for name, value in (values or {}).items():
        schema = schemas.get(name)
        if not schema:
            errors[name] = "Unknown setting"
            continue
        allowed = SETTING_TYPES.get(schema.get("type"), (object,))
        # bool is an int subclass
        if not isinstance(value, allowed) or (schema.get("type") == "number" and isinstance(value, bool)):
            errors[name] = f"Expected {schema.get('type')}"

    if errors:
        raise ClientError("Invalid usergroup settings", fields=list(errors), details=errors)
    return dict(values or {})


async def _check_parent(parent_group: Optional[str], self_id: Optional[ObjectId] = None) -> Optional[ObjectId]:
    if not parent_group:
        return None
    parent = await fetch_group(parent_group)
    if self_id is not None:
        # Walk up from the new parent; reaching self means a cycle
        current = parent
        seen = set()
        while current and current["_id"] not in seen:
            if current["_id"] == self_id:
                raise ClientError("Usergroup can not inherit from itself", fields=["parent_group"])
            seen.add(current["_id"])
            parent_id = current.get("parent_group")
            current = await mongo.get_usergroups_collection().find_one({"_id": parent_id}) if parent_id else None
    return parent["_id"]


async def create(short_name: str, parent_group: Optional[str] = None, values: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Creates a usergroup.

    Raises:
        ClientError: Bad or taken short name, unknown parent, invalid settings
    """
    short_name = (short_name or "").strip()
    if not SHORT_NAME_PATTERN.match(short_name):
        raise ClientError("Invalid short name", fields=["short_name"])

    usergroups = mongo.get_usergroups_collection()
    if await usergroups.find_one({"short_name": short_name}):
        raise ClientError("Usergroup already exists", fields=["short_name"])

    group = {
        "short_name": short_name,
        "parent_group": await _check_parent(parent_group),
        "settings": validate_settings_values(values or {}),
    }
    result = await usergroups.insert_one(group)
    group["_id"] = result.inserted_id

    with LogContext(usergroup_id=group["_id"]):
        logger.info(f"Usergroup created: {short_name}")
    return group


async def update(
    group_id: Any,
    short_name: Optional[str] = None,
    parent_group: Optional[str] = None,
    values: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Updates a usergroup; omitted fields stay as they are.

    Raises:
        ResourceNotFoundError: Unknown group
        ClientError: Bad or taken short name, cyclic parent, invalid settings
    """
    group = await fetch_group(group_id)
    usergroups = mongo.get_usergroups_collection()
    changes: Dict[str, Any] = {}

    if short_name is not None and short_name != group["short_name"]:
        short_name = short_name.strip()
        if not SHORT_NAME_PATTERN.match(short_name):
            raise ClientError("Invalid short name", fields=["short_name"])
        if await usergroups.find_one({"short_name": short_name}):
            raise ClientError("Usergroup already exists", fields=["short_name"])
        changes["short_name"] = short_name

    if parent_group is not None:
        changes["parent_group"] = await _check_parent(parent_group, self_id=group["_id"])

    if values is not None:
        changes["settings"] = validate_settings_values(values)

    if changes:
        await usergroups.update_one({"_id": group["_id"]}, {"$set": changes})
        group.update(changes)
        with LogContext(usergroup_id=group["_id"]):
            logger.info(f"Usergroup updated: {', '.join(changes)}")

    return group


async def get_effective_settings(group: Dict[str, Any]) -> Dict[str, Any]:
    """
    Settings of a group with values inherited from its parents and
    schema defaults for anything unset.
    """
    chain = []
    seen = set()
    current = group
    while current and current["_id"] not in seen:
        seen.add(current["_id"])
        chain.append(current.get("settings") or {})
        parent_id = current.get("parent_group")
        current = await mongo.get_usergroups_collection().find_one({"_id": parent_id}) if parent_id else None

    result = {name: schema.get("default") for name, schema in settings.USERGROUP_SETTINGS.items()}
    for values in reversed(chain):
        result.update(values)
    return result


async def get_user_setting(user: Optional[Dict[str, Any]], name: str) -> Any:
    """
    Setting value for a user: true/max wins across the user's groups.
    """
    schema = settings.USERGROUP_SETTINGS.get(name, {})
    if not user:
        return schema.get("default")

    groups = await mongo.get_usergroups_collection().find(
        {"_id": {"$in": user.get("usergroups", [])}}
    ).to_list(length=None)
    if not groups:
        return schema.get("default")

    values = [(await get_effective_settings(g)).get(name) for g in groups]
    values = [v for v in values if v is not None]
    return max(values) if values else schema.get("default")


async def is_admin(user: Optional[Dict[str, Any]]) -> bool:
    return bool(await get_user_setting(user, "can_use_admin_panel"))


async def seed_default_groups() -> int:
    """
    Creates the default usergroups that are missing.

    Returns:
        Number of groups created
    """
    usergroups = mongo.get_usergroups_collection()
    created = 0
    for default in constants.DEFAULT_USERGROUPS:
        if await usergroups.find_one({"short_name": default["short_name"]}):
            continue
        await usergroups.insert_one({
            "short_name": default["short_name"],
            "parent_group": None,
            "settings": dict(default["settings"]),
        })
        created += 1

    if created:
        logger.info(f"✅ Seeded {created} usergroups")
    return created
