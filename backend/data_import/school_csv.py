"""
CSV import for UDISE school exports
Cleans raw rows, maps UDISE category codes to labels and upserts into MongoDB
"""

import pandas as pd
import logging
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone
from pymongo.errors import PyMongoError

from models.school import UNKNOWN, normalize_management, normalize_location, normalize_school_type

logger = logging.getLogger(__name__)

# record field -> accepted source columns (raw UDISE export first)
COLUMN_ALIASES = {
    "udise_code": ["udise_cod", "udise_code"],
    "school_name": ["school_na", "school_name"],
    "state": ["state"],
    "district": ["district"],
    "block": ["block"],
    "village": ["village"],
    "management": ["state_mgn", "management"],
    "location": ["location"],
    "school_type": ["school_typ", "school_type"],
    "school_category": ["school_cat", "school_category"],
    "school_status": ["school_status"],
}

INFRASTRUCTURE_COLUMNS = {
    "has_electricity": ["electricity", "has_electricity"],
    "has_drinking_water": ["drinking_water", "has_drinking_water"],
    "has_toilets": ["toilets", "has_toilets"],
    "has_library": ["library", "has_library"],
    "has_computer_lab": ["computer_lab", "has_computer_lab"],
}


def clean_string(val) -> str:
    """Strip and collapse internal whitespace; NaN/None become ''"""
    if val is None or (not isinstance(val, str) and pd.isna(val)):
        return ""
    return " ".join(str(val).split())


def clean_int(val) -> Optional[int]:
    text = clean_string(val)
    if not text:
        return None
    try:
        return int(float(text))
    except ValueError:
        return None


def clean_float(val) -> Optional[float]:
    text = clean_string(val)
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def clean_flag(val) -> bool:
    """Handles 1/0, yes/no, true/false and '1-Yes' / '2-No' style values"""
    text = clean_string(val).lower()
    return text in ("1", "1-yes", "yes", "y", "true", "t")


def _pick(row: Dict[str, Any], names: List[str]):
    for name in names:
        if name in row and clean_string(row[name]):
            return row[name]
    return None


def transform_row(row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Turn one CSV row into a school record; None when the row has no code or name"""
    udise_code = clean_string(_pick(row, COLUMN_ALIASES["udise_code"]))
    school_name = clean_string(_pick(row, COLUMN_ALIASES["school_name"]))
    if not udise_code or not school_name:
        return None

    record: Dict[str, Any] = {"udise_code": udise_code, "school_name": school_name}

    for field in ("state", "district", "block", "village"):
        record[field] = clean_string(_pick(row, COLUMN_ALIASES[field])) or UNKNOWN

    record["management"] = normalize_management(_pick(row, COLUMN_ALIASES["management"]))
    record["location"] = normalize_location(_pick(row, COLUMN_ALIASES["location"]))
    record["school_type"] = normalize_school_type(_pick(row, COLUMN_ALIASES["school_type"]))

    for field in ("school_category", "school_status"):
        val = clean_string(_pick(row, COLUMN_ALIASES[field]))
        if val:
            record[field] = val

    for field in ("establishment_year", "total_students", "total_teachers"):
        val = clean_int(row.get(field))
        if val is not None:
            record[field] = val

    record["infrastructure"] = {
        key: clean_flag(_pick(row, names)) for key, names in INFRASTRUCTURE_COLUMNS.items()
    }

    performance = {
        key: clean_float(row.get(key)) for key in ("pass_percentage", "dropout_rate")
    }
    if any(v is not None for v in performance.values()):
        record["academic_performance"] = performance

    contact = {key: clean_string(row.get(key)) for key in ("phone", "email", "website")}
    if any(contact.values()):
        record["contact_info"] = {k: v or None for k, v in contact.items()}

    latitude = clean_float(row.get("latitude"))
    longitude = clean_float(row.get("longitude"))
    if latitude is not None and longitude is not None:
        record["coordinates"] = {"latitude": latitude, "longitude": longitude}

    return record


def read_school_csv(file_path, limit: Optional[int] = None) -> Tuple[List[Dict[str, Any]], int]:
    """Read and transform a CSV file; returns (records, skipped_rows)"""
    df = pd.read_csv(file_path, dtype=str, nrows=limit)
    df.columns = [str(col).strip().lower() for col in df.columns]

    logger.info(f"Parsing school CSV with {len(df)} rows")
    logger.info(f"Columns: {list(df.columns)}")

    records = []
    skipped = 0
    for row in df.to_dict(orient="records"):
        record = transform_row(row)
        if record is None:
            skipped += 1
            continue
        records.append(record)
        if len(records) % 10000 == 0:
            logger.info(f"Processed {len(records)} records...")

    logger.info(f"Transformed {len(records)} records, skipped {skipped}")
    return records, skipped


def write_transformed_csv(records: List[Dict[str, Any]], output_path) -> None:
    """Write normalised records back out, nested objects flattened to dotted columns"""
    pd.json_normalize(records).to_csv(output_path, index=False)
    logger.info(f"Wrote {len(records)} transformed records to {output_path}")


async def import_records(collection, records: List[Dict[str, Any]]) -> Dict[str, int]:
    """Upsert records by udise_code; existing records keep their createdAt and isActive"""
    processed = 0
    failed = 0

    for record in records:
        now = datetime.now(timezone.utc)
        try:
            await collection.update_one(
                {"udise_code": record["udise_code"]},
                {
                    "$set": {**record, "updatedAt": now},
                    "$setOnInsert": {"createdAt": now, "isActive": True},
                },
                upsert=True,
            )
            processed += 1
        except PyMongoError as e:
            logger.error(f"Error importing school {record['udise_code']}: {str(e)}")
            failed += 1

    logger.info(f"School import completed: {processed} records, {failed} failed")
    return {"processed": processed, "failed": failed}
