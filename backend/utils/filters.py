import re
from typing import Any, Dict, List, Mapping, Optional

HIERARCHY_FIELDS = ("state", "district", "block", "village")
CATEGORY_FIELDS = ("management", "location", "school_type")


def _present(params: Mapping[str, Any], key: str) -> Optional[Any]:
    val = params.get(key)
    if val is None:
        return None
    if isinstance(val, str) and not val.strip():
        return None
    return val


def build_school_filter(params: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Build a MongoDB match dict for the school listing/distribution scope:
    State -> District -> Block -> Village, plus categorical and search clauses.

    Hierarchy levels nest strictly: a level is only applied when every
    ancestor level is applied too. A district without a state (or a village
    without its block) is dropped, not rejected.
    """
    match: Dict[str, Any] = {}

    for field in HIERARCHY_FIELDS:
        val = _present(params, field)
        if val is None:
            break
        match[field] = val

    for field in CATEGORY_FIELDS:
        val = _present(params, field)
        if val is not None:
            match[field] = val

    search = _present(params, "search")
    if search is not None:
        pattern = re.escape(str(search).strip())
        match["$or"] = [
            {"school_name": {"$regex": pattern, "$options": "i"}},
            {"udise_code": {"$regex": pattern, "$options": "i"}},
        ]

    return match


def scope_active(match: Dict[str, Any]) -> Dict[str, Any]:
    """Restrict a match dict to records that have not been soft-deleted."""
    return {**match, "isActive": True}


def hierarchy_scope(params: Mapping[str, Any], level: str) -> Optional[Dict[str, Any]]:
    """
    Ancestor match for the distinct values of one hierarchy level.

    Returns None when an ancestor of ``level`` is not selected, in which case
    the level has no options to offer.
    """
    ancestors = HIERARCHY_FIELDS[:HIERARCHY_FIELDS.index(level)]
    scope = build_school_filter({f: params.get(f) for f in ancestors})
    if len(scope) < len(ancestors):
        return None
    return scope


def prepend_match(pipeline: List[dict], match: Dict[str, Any]) -> List[dict]:
    """Prepend a $match stage when match is non-empty."""
    if not match:
        return pipeline
    return [{"$match": match}, *pipeline]
