"""School records router: listing, distribution, filter options and CRUD"""
import asyncio
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiofiles
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Query, UploadFile, status
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from data_import.school_csv import read_school_csv, import_records
from models.school import SchoolCreate, SchoolUpdate, full_address, school_stats
from utils import config
from utils.auth import get_current_user
from utils.database import get_database
from utils.distribution import get_distribution
from utils.filters import HIERARCHY_FIELDS, build_school_filter, hierarchy_scope, scope_active
from utils.pagination import parse_pagination, build_pagination_meta

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/data", tags=["Schools"])

LIST_PROJECTION = {
    "udise_code": 1, "school_name": 1, "state": 1, "district": 1, "block": 1, "village": 1,
    "management": 1, "location": 1, "school_type": 1, "total_students": 1, "total_teachers": 1,
    "isActive": 1, "createdAt": 1,
}
LIST_SORT = [("createdAt", -1), ("_id", -1)]

DUPLICATE_DETAIL = "School with this UDISE code already exists"
NOT_FOUND_DETAIL = "School record not found"


def _object_id(school_id: str) -> ObjectId:
    # Malformed ids cannot match any record
    try:
        return ObjectId(school_id)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL)


def _server_error(action: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Internal server error while {action}",
    )


def serialize_school(doc: dict) -> dict:
    out = dict(doc)
    out["_id"] = str(out["_id"])
    return out


@router.get("")
async def list_schools(
    state: Optional[str] = Query(None),
    district: Optional[str] = Query(None),
    block: Optional[str] = Query(None),
    village: Optional[str] = Query(None),
    management: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    school_type: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Case-insensitive match on school name or UDISE code"),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    db=Depends(get_database),
):
    """Active school records, newest first, with hierarchical filters"""
    match = scope_active(build_school_filter({
        "state": state, "district": district, "block": block, "village": village,
        "management": management, "location": location, "school_type": school_type,
        "search": search,
    }))
    pagination = parse_pagination(page, limit)

    try:
        total, docs = await asyncio.gather(
            db.schools.count_documents(match),
            db.schools.find(
                match,
                LIST_PROJECTION,
                sort=LIST_SORT,
                skip=pagination.skip,
                limit=pagination.limit,
            ).to_list(length=pagination.limit),
        )
    except PyMongoError:
        logger.exception("Get schools error")
        raise _server_error("fetching schools")

    return {
        "success": True,
        "data": [serialize_school(d) for d in docs],
        "pagination": build_pagination_meta(pagination, total),
    }


@router.get("/distribution")
async def get_school_distribution(
    state: Optional[str] = Query(None),
    district: Optional[str] = Query(None),
    block: Optional[str] = Query(None),
    village: Optional[str] = Query(None),
    management: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    school_type: Optional[str] = Query(None),
    db=Depends(get_database),
):
    """Management, location and school-type distributions for charts"""
    match = scope_active(build_school_filter({
        "state": state, "district": district, "block": block, "village": village,
        "management": management, "location": location, "school_type": school_type,
    }))

    try:
        distribution = await get_distribution(db.schools, match)
    except PyMongoError:
        logger.exception("Distribution data error")
        raise _server_error("fetching distribution data")

    return {"success": True, **distribution}


@router.get("/filters")
async def get_filter_options(
    state: Optional[str] = Query(None),
    district: Optional[str] = Query(None),
    block: Optional[str] = Query(None),
    db=Depends(get_database),
):
    """Distinct values for the hierarchical dropdowns, each scoped by the selected ancestors"""
    params = {"state": state, "district": district, "block": block}

    async def distinct_values(level: str):
        scope = hierarchy_scope(params, level)
        if scope is None:
            return []
        values = await db.schools.distinct(level, scope_active(scope))
        return sorted(v for v in values if v)

    try:
        states, districts, blocks, villages = await asyncio.gather(
            *(distinct_values(level) for level in HIERARCHY_FIELDS)
        )
    except PyMongoError:
        logger.exception("Filter options error")
        raise _server_error("fetching filter options")

    return {
        "success": True,
        "data": {
            "states": states,
            "districts": districts,
            "blocks": blocks,
            "villages": villages,
        },
    }


@router.post("/import", status_code=status.HTTP_202_ACCEPTED)
async def import_school_data(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(..., description="UDISE school export (.csv)"),
    db=Depends(get_database),
    current_user: dict = Depends(get_current_user),
):
    """Upload a school CSV; rows are normalised and upserted in the background"""
    filename = Path(file.filename or "").name
    if not filename.lower().endswith(".csv"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only .csv files are supported")

    import_id = str(uuid.uuid4())
    config.UPLOADS_DIR.mkdir(parents=True, exist_ok=True)
    file_path = config.UPLOADS_DIR / f"schools_{import_id}_{filename}"

    async with aiofiles.open(file_path, 'wb') as f:
        await f.write(await file.read())

    await db.imports.insert_one({
        "import_id": import_id,
        "status": "processing",
        "filename": filename,
        "records_processed": 0,
        "records_skipped": 0,
        "errors": [],
        "created_by": current_user["user_id"],
        "created_at": datetime.now(timezone.utc),
        "completed_at": None,
    })
    background_tasks.add_task(process_school_file, db, str(file_path), filename, import_id)

    return {
        "import_id": import_id,
        "status": "processing",
        "message": "School data import started"
    }


@router.get("/import/{import_id}")
async def get_import_status(import_id: str, db=Depends(get_database)):
    """Progress of a CSV import"""
    record = await db.imports.find_one({"import_id": import_id}, {"_id": 0})
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Import not found")
    return record


async def process_school_file(db, file_path: str, filename: str, import_id: str):
    """Parse the uploaded CSV and upsert into the schools collection"""
    try:
        logger.info(f"Processing school file: {filename}")
        records, skipped = read_school_csv(file_path)
        result = await import_records(db.schools, records)
        update = {
            "status": "completed",
            "records_processed": result["processed"],
            "records_skipped": skipped,
            "errors": [f"{result['failed']} records failed to save"] if result["failed"] else [],
        }
    except Exception as e:
        # Background task: nothing upstream to report to but the import record
        logger.exception(f"School import failed: {filename}")
        update = {"status": "failed", "errors": [str(e)]}
    finally:
        Path(file_path).unlink(missing_ok=True)

    update["completed_at"] = datetime.now(timezone.utc)
    await db.imports.update_one({"import_id": import_id}, {"$set": update})


@router.get("/{school_id}")
async def get_school(school_id: str, db=Depends(get_database)):
    """One school record, including soft-deleted ones"""
    oid = _object_id(school_id)
    try:
        doc = await db.schools.find_one({"_id": oid})
    except PyMongoError:
        logger.exception("Get school error")
        raise _server_error("fetching school")

    if not doc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL)

    data = serialize_school(doc)
    data["fullAddress"] = full_address(doc)
    data["stats"] = school_stats(doc)
    return {"success": True, "data": data}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_school(
    school: SchoolCreate,
    db=Depends(get_database),
    current_user: dict = Depends(get_current_user),
):
    """Add a school record"""
    try:
        existing = await db.schools.find_one({"udise_code": school.udise_code}, {"_id": 1})
        if existing:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_DETAIL)

        doc = school.to_document(current_user["user_id"], datetime.now(timezone.utc))
        result = await db.schools.insert_one(doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_DETAIL)
    except PyMongoError:
        logger.exception("Create school error")
        raise _server_error("creating school")

    doc["_id"] = result.inserted_id
    logger.info(f"School created: {school.udise_code}")
    return {
        "success": True,
        "message": "School record created successfully",
        "data": serialize_school(doc),
    }


@router.put("/{school_id}")
async def update_school(
    school_id: str,
    payload: SchoolUpdate,
    db=Depends(get_database),
    current_user: dict = Depends(get_current_user),
):
    """Update the fields sent; unsent fields keep their stored values"""
    oid = _object_id(school_id)
    update = payload.to_update_doc()

    try:
        if "udise_code" in update:
            clash = await db.schools.find_one(
                {"udise_code": update["udise_code"], "_id": {"$ne": oid}}, {"_id": 1}
            )
            if clash:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_DETAIL)

        update["updated_by"] = current_user["user_id"]
        update["updatedAt"] = datetime.now(timezone.utc)
        doc = await db.schools.find_one_and_update(
            {"_id": oid},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_DETAIL)
    except PyMongoError:
        logger.exception("Update school error")
        raise _server_error("updating school")

    if not doc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL)

    return {
        "success": True,
        "message": "School record updated successfully",
        "data": serialize_school(doc),
    }


@router.delete("/{school_id}")
async def delete_school(
    school_id: str,
    db=Depends(get_database),
    current_user: dict = Depends(get_current_user),
):
    """Soft delete: the record stays in storage with isActive=false"""
    oid = _object_id(school_id)
    try:
        doc = await db.schools.find_one_and_update(
            {"_id": oid},
            {"$set": {
                "isActive": False,
                "updated_by": current_user["user_id"],
                "updatedAt": datetime.now(timezone.utc),
            }},
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError:
        logger.exception("Delete school error")
        raise _server_error("deleting school")

    if not doc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL)

    logger.info(f"School soft-deleted: {doc.get('udise_code')}")
    return {
        "success": True,
        "message": "School record deleted successfully",
        "data": serialize_school(doc),
    }
