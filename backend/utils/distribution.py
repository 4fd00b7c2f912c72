"""Categorical breakdowns of school records for chart rendering"""
import asyncio
from typing import Any, Dict, List

from utils.filters import prepend_match

# response key -> school field
DISTRIBUTION_FIELDS = {
    "managementTypeDistribution": "management",
    "locationDistribution": "location",
    "schoolTypeDistribution": "school_type",
}


def distribution_pipeline(field: str, match: Dict[str, Any]) -> List[dict]:
    """Group matching records by the literal value of ``field``.

    Records where the field is null or missing are left out, so each
    sequence sums to the number of matching records that define the field.
    """
    return prepend_match(
        [
            {"$match": {field: {"$ne": None}}},
            {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
            {"$sort": {"count": -1, "_id": 1}},
            {"$project": {"_id": 0, "label": "$_id", "count": 1}},
        ],
        match,
    )


async def _group_counts(collection, field: str, match: Dict[str, Any]) -> List[dict]:
    cursor = collection.aggregate(distribution_pipeline(field, match))
    rows = await cursor.to_list(length=None)
    return [{"label": r["label"], "count": r["count"]} for r in rows]


async def get_distribution(collection, match: Dict[str, Any]) -> Dict[str, Any]:
    """
    Management, location and school-type distributions plus the total number
    of matching schools.

    The total is counted directly against ``match`` rather than summed from a
    distribution. Store errors propagate; callers never get a zeroed result
    for a failed query.
    """
    keys = list(DISTRIBUTION_FIELDS)
    *groups, total = await asyncio.gather(
        *(_group_counts(collection, DISTRIBUTION_FIELDS[k], match) for k in keys),
        collection.count_documents(match),
    )

    result: Dict[str, Any] = dict(zip(keys, groups))
    result["totalSchools"] = total
    return result
