"""
FIT protocol constants: base types, message numbers, field names and unit conversions.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, NamedTuple, Optional

FIT_SIGNATURE = b".FIT"
VALID_HEADER_SIZES = (12, 14)
FIT_EPOCH = datetime(1989, 12, 31, tzinfo=timezone.utc)

# Record header bits
COMPRESSED_HEADER_MASK = 0x80
DEFINITION_MASK = 0x40
DEVELOPER_DATA_MASK = 0x20
LOCAL_TYPE_MASK = 0x0F
COMPRESSED_LOCAL_TYPE_SHIFT = 5
COMPRESSED_LOCAL_TYPE_MASK = 0x03
COMPRESSED_TIME_MASK = 0x1F

BASE_TYPE_NUMBER_MASK = 0x1F


class BaseType(NamedTuple):
    number: int
    name: str
    size: int
    fmt: Optional[str]  # struct code, None for strings
    invalid: Optional[int]  # None for floats (NaN) and strings


BASE_TYPES: Dict[int, BaseType] = {
    bt.number: bt
    for bt in (
        BaseType(0x00, "enum", 1, "B", 0xFF),
        BaseType(0x01, "sint8", 1, "b", 0x7F),
        BaseType(0x02, "uint8", 1, "B", 0xFF),
        BaseType(0x03, "sint16", 2, "h", 0x7FFF),
        BaseType(0x04, "uint16", 2, "H", 0xFFFF),
        BaseType(0x05, "sint32", 4, "i", 0x7FFFFFFF),
        BaseType(0x06, "uint32", 4, "I", 0xFFFFFFFF),
        BaseType(0x07, "string", 1, None, None),
        BaseType(0x08, "float32", 4, "f", None),
        BaseType(0x09, "float64", 8, "d", None),
        BaseType(0x0A, "uint8z", 1, "B", 0x00),
        BaseType(0x0B, "uint16z", 2, "H", 0x0000),
        BaseType(0x0C, "uint32z", 4, "I", 0x00000000),
        BaseType(0x0D, "byte", 1, "B", 0xFF),
        BaseType(0x0E, "sint64", 8, "q", 0x7FFFFFFFFFFFFFFF),
        BaseType(0x0F, "uint64", 8, "Q", 0xFFFFFFFFFFFFFFFF),
        BaseType(0x10, "uint64z", 8, "Q", 0x0000000000000000),
    )
}

BASE_TYPE_BY_NAME: Dict[str, BaseType] = {bt.name: bt for bt in BASE_TYPES.values()}

# Global message numbers
MESG_FILE_ID = 0
MESG_SESSION = 18
MESG_LAP = 19
MESG_RECORD = 20
MESG_EVENT = 21
MESG_DEVICE_INFO = 23
MESG_FIELD_DESCRIPTION = 206
MESG_DEVELOPER_DATA_ID = 207

MESSAGE_NAMES: Dict[int, str] = {
    MESG_FILE_ID: "file_id",
    MESG_SESSION: "session",
    MESG_LAP: "lap",
    MESG_RECORD: "record",
    MESG_EVENT: "event",
    MESG_DEVICE_INFO: "device_info",
    MESG_FIELD_DESCRIPTION: "field_description",
    MESG_DEVELOPER_DATA_ID: "developer_data_id",
}

TIMESTAMP_FIELD = 253

RECORD_FIELDS: Dict[int, str] = {
    TIMESTAMP_FIELD: "timestamp",
    0: "position_lat",
    1: "position_long",
    2: "altitude",
    3: "heart_rate",
    4: "cadence",
    5: "distance",
    6: "speed",
    7: "power",
    13: "temperature",
    29: "accumulated_power",
    73: "enhanced_speed",
    78: "enhanced_altitude",
}

FILE_ID_FIELDS: Dict[int, str] = {
    0: "type",
    1: "manufacturer",
    2: "product",
    3: "serial_number",
    4: "time_created",
    5: "number",
    8: "product_name",
}

FIELD_DESCRIPTION_FIELDS: Dict[int, str] = {
    0: "developer_data_index",
    1: "field_definition_number",
    2: "fit_base_type_id",
    3: "field_name",
    6: "scale",
    7: "offset",
    8: "units",
}

DEVELOPER_DATA_ID_FIELDS: Dict[int, str] = {
    0: "developer_id",
    1: "application_id",
    2: "manufacturer_id",
    3: "developer_data_index",
    4: "application_version",
}

SEMICIRCLES_TO_DEGREES = 180.0 / 2 ** 31
MM_PER_S_TO_KMH = 0.001 * 3.6
ALTITUDE_SCALE = 5.0
ALTITUDE_OFFSET = 500.0
DISTANCE_SCALE = 100.0


def fit_timestamp_to_datetime(seconds: int) -> datetime:
    return FIT_EPOCH + timedelta(seconds=seconds)


def semicircles_to_degrees(raw: int) -> float:
    return raw * SEMICIRCLES_TO_DEGREES


def speed_to_kmh(raw: int) -> float:
    return raw * MM_PER_S_TO_KMH


def altitude_to_m(raw: int, enhanced: bool = False) -> float:
    if enhanced:
        return raw / ALTITUDE_SCALE
    return raw / ALTITUDE_SCALE - ALTITUDE_OFFSET


def distance_to_m(raw: int) -> float:
    return raw / DISTANCE_SCALE


CRC_TABLE = (
    0x0000, 0xCC01, 0xD801, 0x1400, 0xF001, 0x3C00, 0x2800, 0xE401,
    0xA001, 0x6C00, 0x7800, 0xB401, 0x5000, 0x9C01, 0x8801, 0x4400,
)


def fit_crc16(data: bytes, crc: int = 0) -> int:
    """FIT CRC-16, processed one nibble at a time."""
    for byte in data:
        tmp = CRC_TABLE[crc & 0xF]
        crc = (crc >> 4) & 0x0FFF
        crc = crc ^ tmp ^ CRC_TABLE[byte & 0xF]
        tmp = CRC_TABLE[crc & 0xF]
        crc = (crc >> 4) & 0x0FFF
        crc = crc ^ tmp ^ CRC_TABLE[(byte >> 4) & 0xF]
    return crc & 0xFFFF
