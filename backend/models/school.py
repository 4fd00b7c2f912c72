"""School record model, payload schemas and category normalisation"""
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, Dict, Any, Type
from enum import Enum
from datetime import datetime


class ManagementType(str, Enum):
    GOVERNMENT = "Government"
    PRIVATE_UNAIDED = "Private Unaided"
    PRIVATE_AIDED = "Private Aided"
    CENTRAL_GOVERNMENT = "Central Government"
    OTHER = "Other"


class LocationType(str, Enum):
    RURAL = "Rural"
    URBAN = "Urban"
    OTHER = "Other"


class SchoolType(str, Enum):
    CO_ED = "Co-Ed"
    GIRLS = "Girls"
    BOYS = "Boys"
    OTHER = "Other"


UNKNOWN = "Unknown"

REQUIRED_FIELDS = (
    "udise_code", "school_name", "state", "district", "block", "village",
    "management", "location", "school_type",
)

# UDISE export codes -> labels
MANAGEMENT_CODES = {
    "1": ManagementType.GOVERNMENT,
    "1-Department": ManagementType.GOVERNMENT,
    "2": ManagementType.GOVERNMENT,
    "2-Tribal": ManagementType.GOVERNMENT,
    "3": ManagementType.PRIVATE_AIDED,
    "3-Minority": ManagementType.PRIVATE_AIDED,
    "4": ManagementType.OTHER,
    "4-Other": ManagementType.OTHER,
    "5": ManagementType.PRIVATE_UNAIDED,
    "5-Private": ManagementType.PRIVATE_UNAIDED,
}

LOCATION_CODES = {
    "1": LocationType.RURAL,
    "1-Rural": LocationType.RURAL,
    "2": LocationType.URBAN,
    "2-Urban": LocationType.URBAN,
}

SCHOOL_TYPE_CODES = {
    "1": SchoolType.BOYS,
    "1-Boys": SchoolType.BOYS,
    "2": SchoolType.GIRLS,
    "2-Girls": SchoolType.GIRLS,
    "3": SchoolType.CO_ED,
    "3-Co-educational": SchoolType.CO_ED,
}


def match_label(enum_cls: Type[Enum], value: Any) -> Optional[Enum]:
    """Case-insensitive lookup of an enum member by its label"""
    if value is None:
        return None
    key = " ".join(str(value).split()).lower()
    for member in enum_cls:
        if member.value.lower() == key:
            return member
    return None


def _normalize(enum_cls, codes: Dict[str, Enum], value: Any) -> str:
    clean = " ".join(str(value or "").split())
    member = codes.get(clean) or match_label(enum_cls, clean) or enum_cls.OTHER
    return member.value


def normalize_management(value: Any) -> str:
    """Map a raw management code or label to a ManagementType label, 'Other' if unrecognised"""
    return _normalize(ManagementType, MANAGEMENT_CODES, value)


def normalize_location(value: Any) -> str:
    """Map a raw location code or label to a LocationType label, 'Other' if unrecognised"""
    return _normalize(LocationType, LOCATION_CODES, value)


def normalize_school_type(value: Any) -> str:
    """Map a raw school type code or label to a SchoolType label, 'Other' if unrecognised"""
    return _normalize(SchoolType, SCHOOL_TYPE_CODES, value)


class Infrastructure(BaseModel):
    has_electricity: bool = False
    has_drinking_water: bool = False
    has_toilets: bool = False
    has_library: bool = False
    has_computer_lab: bool = False


class AcademicPerformance(BaseModel):
    pass_percentage: Optional[float] = Field(None, ge=0, le=100)
    dropout_rate: Optional[float] = Field(None, ge=0, le=100)


class ContactInfo(BaseModel):
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None


class Coordinates(BaseModel):
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class SchoolFields(BaseModel):
    """Optional descriptive fields shared by create and update payloads"""
    model_config = ConfigDict(str_strip_whitespace=True, use_enum_values=True)

    school_category: Optional[str] = None
    school_status: Optional[str] = None
    establishment_year: Optional[int] = Field(None, ge=1900)
    total_students: Optional[int] = Field(None, ge=0)
    total_teachers: Optional[int] = Field(None, ge=0)
    academic_performance: Optional[AcademicPerformance] = None
    contact_info: Optional[ContactInfo] = None
    coordinates: Optional[Coordinates] = None

    @field_validator("establishment_year")
    @classmethod
    def year_not_in_future(cls, v):
        if v is not None and v > datetime.now().year:
            raise ValueError("Establishment year cannot be in the future")
        return v

    @field_validator("management", "location", "school_type", mode="before", check_fields=False)
    @classmethod
    def canonical_label(cls, v, info):
        enum_cls = {
            "management": ManagementType,
            "location": LocationType,
            "school_type": SchoolType,
        }[info.field_name]
        member = match_label(enum_cls, v)
        return member.value if member else v


class SchoolCreate(SchoolFields):
    udise_code: str = Field(..., min_length=1)
    school_name: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    district: str = Field(..., min_length=1)
    block: str = Field(..., min_length=1)
    village: str = Field(..., min_length=1)
    management: ManagementType
    location: LocationType
    school_type: SchoolType
    infrastructure: Infrastructure = Field(default_factory=Infrastructure)

    def to_document(self, user_id: Optional[str], now: datetime) -> Dict[str, Any]:
        doc = self.model_dump()
        doc.update({
            "isActive": True,
            "created_by": user_id,
            "updated_by": user_id,
            "createdAt": now,
            "updatedAt": now,
        })
        return doc


class SchoolUpdate(SchoolFields):
    udise_code: Optional[str] = Field(None, min_length=1)
    school_name: Optional[str] = Field(None, min_length=1)
    state: Optional[str] = Field(None, min_length=1)
    district: Optional[str] = Field(None, min_length=1)
    block: Optional[str] = Field(None, min_length=1)
    village: Optional[str] = Field(None, min_length=1)
    management: Optional[ManagementType] = None
    location: Optional[LocationType] = None
    school_type: Optional[SchoolType] = None
    infrastructure: Optional[Infrastructure] = None
    isActive: Optional[bool] = None

    @model_validator(mode="after")
    def required_fields_not_cleared(self):
        cleared = [f for f in REQUIRED_FIELDS if f in self.model_fields_set and getattr(self, f) is None]
        if cleared:
            raise ValueError(f"Required fields cannot be null: {', '.join(cleared)}")
        return self

    def to_update_doc(self) -> Dict[str, Any]:
        """$set document holding only the fields sent; nested objects replace the stored ones whole"""
        if not self.model_fields_set:
            return {}
        return self.model_dump(include=self.model_fields_set)


def full_address(doc: Dict[str, Any]) -> str:
    return ", ".join(str(doc.get(f, "")) for f in ("village", "block", "district", "state"))


def school_stats(doc: Dict[str, Any]) -> Dict[str, Any]:
    students = doc.get("total_students") or 0
    teachers = doc.get("total_teachers") or 0
    return {
        "totalStudents": students,
        "totalTeachers": teachers,
        "teacherStudentRatio": round(students / teachers, 2) if students and teachers else 0,
    }
