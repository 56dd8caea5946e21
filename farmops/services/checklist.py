"""Build concrete task checklists from template steps."""
import copy
from typing import Any, Dict, Iterable, List, Optional

_BASE_STEP_KEYS = ("id", "text", "type", "required")


def normalize_steps(
    steps: Optional[List[Dict[str, Any]]],
    reserved: Iterable[str] = (),
) -> Optional[List[Dict[str, Any]]]:
    """
    Give every template step a unique id and a kind.

    Steps keep the id they carry. Steps without one, or repeating an earlier
    id, get the lowest step-N not used in the list or in reserved (ids of
    steps the template had before the edit).
    """
    if steps is None:
        return None
    taken = {step.get("id") for step in steps if step.get("id")} | set(reserved)
    seen = set()
    next_number = 1
    normalized = []
    for step in steps:
        step = dict(step)
        step_id = step.get("id")
        if not step_id or step_id in seen:
            while f"step-{next_number}" in taken:
                next_number += 1
            step_id = f"step-{next_number}"
            taken.add(step_id)
        seen.add(step_id)
        step["id"] = step_id
        step["type"] = step.get("type") or "instruction"
        normalized.append(step)
    return normalized


def build_item(step: Dict[str, Any]) -> Dict[str, Any]:
    """Turn one template step into an unchecked checklist item."""
    step_type = step.get("type") or "instruction"
    item = {
        "id": step["id"],
        "text": step.get("text") or step.get("label") or "",
        "type": step_type,
        "required": bool(step.get("required", False)),
        "completed": False,
        "config": {
            key: value
            for key, value in step.items()
            if key not in _BASE_STEP_KEYS and value is not None
        },
        "data": None,
    }
    if step_type == "data-capture":
        item["data_collection"] = {
            "type": step.get("data_type") or "text",
            "label": step.get("label") or "",
            "value": None,
        }
    return item


def build_checklist(steps: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    return [build_item(step) for step in normalize_steps(steps) or []]


def rebuild_checklist(
    existing: Optional[List[Dict[str, Any]]],
    steps: Optional[List[Dict[str, Any]]],
) -> List[Dict[str, Any]]:
    """
    Rebuild a checklist from new template steps.

    Completion state and captured data of steps whose id survives are kept;
    removed steps are dropped and new steps start unchecked.
    """
    previous = {item.get("id"): item for item in existing or []}
    rebuilt = []
    for item in build_checklist(steps):
        old = previous.get(item["id"])
        if old is not None:
            item["completed"] = bool(old.get("completed", False))
            item["data"] = copy.deepcopy(old.get("data"))
            if "data_collection" in item and old.get("data_collection"):
                item["data_collection"]["value"] = copy.deepcopy(old["data_collection"].get("value"))
        rebuilt.append(item)
    return rebuilt


def checklist_progress(checklist: Optional[List[Dict[str, Any]]]) -> Optional[int]:
    """Percentage of completed items, or None for an empty checklist."""
    if not checklist:
        return None
    done = sum(1 for item in checklist if item.get("completed"))
    return round(done * 100 / len(checklist))
