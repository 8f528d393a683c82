"""Keyword-based mapping of a voice transcript onto record fields."""
import logging
import re
from typing import Callable, Dict, List, NamedTuple, Optional

from pydantic import BaseModel, Field

from .models import FieldRecord, Language

logger = logging.getLogger(__name__)

ZONE_PREFIX = "zone:"


class FieldMapping(NamedTuple):
    keys: List[str]
    field: str  # record attribute, or "zone:<attribute>" for the current zone
    parser: Optional[Callable[[str], str]] = None


def _strip_percent(value: str) -> str:
    return value.replace("%", "")


FIELD_MAPPINGS: Dict[str, List[FieldMapping]] = {
    "en": [
        FieldMapping(["field id", "field identification", "id"], "field_id"),
        FieldMapping(["district", "in district"], "district"),
        FieldMapping(["block"], "block"),
        FieldMapping(["village"], "village"),
        FieldMapping(["area", "acres", "field area"], "field_area_acres"),
        FieldMapping(["farmer name", "name"], "farmer_name"),
        FieldMapping(["phone", "mobile", "number"], "farmer_phone"),
        FieldMapping(["collector name"], "collector_name"),
        FieldMapping(["collector phone"], "collector_phone"),
        FieldMapping(["variety", "seed variety"], "variety"),
        FieldMapping(["seed company"], "seed_company"),
        FieldMapping(["seed type"], "seed_type"),
        FieldMapping(["moisture"], "moisture_percent", _strip_percent),
        FieldMapping(["harvest weight", "total weight"], "total_harvest_weight"),
        FieldMapping(["plant height", "height"], "zone:plant_height"),
        FieldMapping(["plant color", "color"], "zone:plant_color"),
    ],
    "hi": [
        FieldMapping(["जिला", "जिलें", "डिसट्रिक्ट"], "district"),
        FieldMapping(["ब्लॉक", "प्रखंड"], "block"),
        FieldMapping(["गांव", "ग्राम", "विलेज"], "village"),
        FieldMapping(["क्षेत्रफल", "एकड़", "एरिया", "क्षेत्र"], "field_area_acres"),
        FieldMapping(["किसान का नाम", "नाम", "किसान", "नाम है"], "farmer_name"),
        FieldMapping(["फोन नंबर", "मोबाइल", "नंबर", "फोन"], "farmer_phone"),
        FieldMapping(["वैराइटी", "किस्म", "बीज"], "variety"),
        FieldMapping(["कंपनी", "सीड कंपनी"], "seed_company"),
        FieldMapping(["हाइट", "ऊंचाई", "लंबाई"], "zone:plant_height"),
        FieldMapping(["रंग", "कलर"], "zone:plant_color"),
    ],
    "od": [
        FieldMapping(["ଜିଲ୍ଲା", "ଜିଲ୍ଲାର"], "district"),
        FieldMapping(["ବ୍ଲକ", "ପ୍ରଖଣ୍ଡ"], "block"),
        FieldMapping(["ଗାଁ", "ଗ୍ରାମ", "ଭିଲେଜ"], "village"),
        FieldMapping(["ଏକର", "ଏରିଆ", "କ୍ଷେତ୍ରଫଳ"], "field_area_acres"),
        FieldMapping(["ଚାଷୀଙ୍କ ନାମ", "ନାମ", "ଚାଷୀ"], "farmer_name"),
        FieldMapping(["ଫୋନ", "ମୋବାଇଲ", "ନମ୍ବର"], "farmer_phone"),
        FieldMapping(["କିସମ", "ବ୍ରାଇଟି", "ବିହନ"], "variety"),
        FieldMapping(["ଉଚ୍ଚତା", "ହାଇଟ"], "zone:plant_height"),
        FieldMapping(["ରଙ୍ଗ", "କଲର"], "zone:plant_color"),
    ],
}


class SpeechParseResult(BaseModel):
    fields: Dict[str, str] = Field(default_factory=dict)
    zone_updates: Dict[str, str] = Field(default_factory=dict)

    @property
    def empty(self) -> bool:
        return not self.fields and not self.zone_updates


def _key_pattern(key: str) -> "re.Pattern[str]":
    return re.compile(rf"{re.escape(key)}\s*(?:is|है|ଅଛି|:)?\s*([^,.\n]+)", re.IGNORECASE)


def parse_speech_to_fields(transcript: str, language) -> SpeechParseResult:
    """
    Scans the transcript for each known keyword and captures the text after
    it up to the next comma, full stop or newline. When several keywords of
    one mapping match, the last one in the table wins.
    """
    if isinstance(language, Language):
        language = language.value
    mappings = FIELD_MAPPINGS.get(language, FIELD_MAPPINGS["en"])
    lowered = transcript.lower()

    result = SpeechParseResult()
    for mapping in mappings:
        for key in mapping.keys:
            match = _key_pattern(key).search(lowered)
            if not match:
                continue
            value = match.group(1).strip()
            if not value:
                continue
            if mapping.parser:
                value = mapping.parser(value)

            if mapping.field.startswith(ZONE_PREFIX):
                result.zone_updates[mapping.field[len(ZONE_PREFIX):]] = value
            else:
                result.fields[mapping.field] = value

    logger.debug(f"Parsed {len(result.fields)} fields and {len(result.zone_updates)} zone values from speech")
    return result


def apply_speech_result(record: FieldRecord, result: SpeechParseResult, zone_id: Optional[str] = None) -> FieldRecord:
    """Copies parsed values onto the record; zone values need a zone_id."""
    for name, value in result.fields.items():
        setattr(record, name, value)
    if zone_id is not None:
        zone = record.zone(zone_id)
        for name, value in result.zone_updates.items():
            setattr(zone, name, value)
    return record
