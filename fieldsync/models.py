import random
import string
import time
from datetime import date
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

ZONE_IDS = ("A", "B", "C")
ZONE_LABELS = {"A": "Good", "B": "Medium", "C": "Weak"}

_ID_ALPHABET = string.digits + string.ascii_lowercase


def now_ms() -> int:
    return int(time.time() * 1000)


class SyncStatus(str, Enum):
    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


class Language(str, Enum):
    EN = "en"
    HI = "hi"
    OD = "od"


class CamelModel(BaseModel):
    """Base for models persisted and sent over the wire with camelCase keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ZoneData(CamelModel):
    zone_id: Literal["A", "B", "C"]
    label: str
    crop_photo_uri: Optional[str] = None
    cob_photo_uri: Optional[str] = None
    plant_height: Optional[str] = None
    plant_color: Optional[str] = None
    stand_density: Optional[str] = None
    cob_size_observed: Optional[str] = None
    plants_sampled: Optional[str] = None
    completed: bool = False


class PhotoData(CamelModel):
    type: str
    uri: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timestamp: int
    filename: str


def default_zones() -> List[ZoneData]:
    return [ZoneData(zone_id=z, label=ZONE_LABELS[z]) for z in ZONE_IDS]


class FieldRecord(CamelModel):
    id: str
    created_at: int
    updated_at: int
    sync_status: SyncStatus = SyncStatus.PENDING
    current_phase: int = 0
    current_step: int = 0

    farmer_selfie_uri: Optional[str] = None

    # Location
    field_id: str = ""
    collection_date: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    gps_accuracy: Optional[float] = None
    district: str = ""
    block: str = ""
    village: str = ""
    field_area_acres: str = ""
    field_area_hectares: str = ""

    entry_photo_uri: Optional[str] = None
    entry_photo_lat: Optional[float] = None
    entry_photo_lng: Optional[float] = None
    center_photo_uri: Optional[str] = None
    center_photo_lat: Optional[float] = None
    center_photo_lng: Optional[float] = None

    zones: List[ZoneData] = Field(default_factory=default_zones)

    # Crop and yield
    variety: str = ""
    seed_company: str = ""
    seed_type: str = ""
    harvest_date: str = ""
    total_harvest_weight: str = ""
    moisture_percent: str = ""
    dry_weight: str = ""
    yield_kg_ha: str = ""
    yield_quintals_acre: str = ""

    # Agronomy
    sowing_date: str = ""
    growing_days: str = ""
    basal_fertilizer: str = ""
    top_dressing1: str = ""
    top_dressing2: str = ""
    organic_manure: str = ""

    irrigation_type: str = ""
    irrigation_number: str = ""
    water_source: str = ""

    major_pest: str = ""
    pest_severity: str = ""
    disease: str = ""
    pesticide_used: str = ""

    soil_type: str = ""
    soil_ph: str = ""
    organic_carbon: str = ""
    npk: str = ""
    previous_crop: str = ""

    # Conditions
    rainfall_pattern: str = ""
    drought: str = ""
    heat_stress: str = ""
    lodging: str = ""
    stand_quality: str = ""
    cob_size: str = ""
    grain_fill_quality: str = ""

    harvest_photo_uri: Optional[str] = None
    weighment_photo_uri: Optional[str] = None
    farmer_photo_uri: Optional[str] = None

    # Farmer and collector
    farmer_name: str = ""
    farmer_phone: str = ""
    land_ownership: str = ""
    consent: str = ""
    collector_name: str = ""
    collector_phone: str = ""
    time_spent: str = ""

    photos: List[PhotoData] = Field(default_factory=list)

    @field_validator("zones")
    @classmethod
    def _fixed_zones(cls, zones: List[ZoneData]) -> List[ZoneData]:
        if tuple(z.zone_id for z in zones) != ZONE_IDS:
            raise ValueError(f"zones must be exactly {', '.join(ZONE_IDS)} in order")
        return zones

    @model_validator(mode="after")
    def _timestamps_ordered(self) -> "FieldRecord":
        if self.updated_at < self.created_at:
            raise ValueError("updatedAt must not precede createdAt")
        return self

    def zone(self, zone_id: str) -> ZoneData:
        return self.zones[ZONE_IDS.index(zone_id)]


def generate_record_id(timestamp_ms: Optional[int] = None) -> str:
    """Epoch milliseconds followed by 9 random base36 characters."""
    ts = timestamp_ms if timestamp_ms is not None else now_ms()
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{ts}{suffix}"


def create_empty_record() -> FieldRecord:
    now = now_ms()
    return FieldRecord(
        id=generate_record_id(now),
        created_at=now,
        updated_at=now,
        collection_date=date.today().isoformat(),
    )


class SyncReport(BaseModel):
    attempted: int = 0
    synced: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
