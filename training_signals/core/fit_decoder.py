"""
FIT binary decoder for the training signals system.
Turns a raw FIT buffer into per-sample records and projected telemetry channels.
"""
from __future__ import annotations

import logging
import math
import struct
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..models.types import (
    DecodeResult,
    DeveloperDataId,
    DeveloperFieldDefinition,
    DeveloperFieldDescriptor,
    FieldDefinition,
    FitHeader,
    MessageDefinition,
)
from ..utils.config import DecoderSettings
from .channels import project_channels
from .fit_profile import (
    BASE_TYPE_BY_NAME,
    BASE_TYPE_NUMBER_MASK,
    BASE_TYPES,
    COMPRESSED_HEADER_MASK,
    COMPRESSED_LOCAL_TYPE_MASK,
    COMPRESSED_LOCAL_TYPE_SHIFT,
    COMPRESSED_TIME_MASK,
    DEFINITION_MASK,
    DEVELOPER_DATA_ID_FIELDS,
    DEVELOPER_DATA_MASK,
    FIELD_DESCRIPTION_FIELDS,
    FILE_ID_FIELDS,
    FIT_SIGNATURE,
    LOCAL_TYPE_MASK,
    MESG_DEVELOPER_DATA_ID,
    MESG_FIELD_DESCRIPTION,
    MESG_FILE_ID,
    MESG_LAP,
    MESG_RECORD,
    MESG_SESSION,
    MESSAGE_NAMES,
    RECORD_FIELDS,
    TIMESTAMP_FIELD,
    VALID_HEADER_SIZES,
    BaseType,
    altitude_to_m,
    distance_to_m,
    fit_crc16,
    fit_timestamp_to_datetime,
    semicircles_to_degrees,
    speed_to_kmh,
)

logger = logging.getLogger(__name__)

# Messages whose fields are fully decoded; all others only yield their timestamp.
_DECODED_MESSAGES = (MESG_FILE_ID, MESG_RECORD, MESG_FIELD_DESCRIPTION, MESG_DEVELOPER_DATA_ID)

_SIZE_GUESSES = {1: "uint8", 2: "uint16", 4: "uint32"}


class FITDecodeError(ValueError):
    """The buffer is not a decodable FIT activity."""


class _TruncatedMessage(Exception):
    pass


@dataclass
class _DecodeState:
    definitions: Dict[int, MessageDefinition] = field(default_factory=dict)
    developer_fields: Dict[Tuple[int, int], DeveloperFieldDescriptor] = field(default_factory=dict)
    developer_data_ids: Dict[int, DeveloperDataId] = field(default_factory=dict)
    last_timestamp: Optional[int] = None
    records: List[Dict[str, Any]] = field(default_factory=list)
    file_id: Dict[str, Any] = field(default_factory=dict)
    message_counts: Counter = field(default_factory=Counter)


def _is_invalid(value, base_type: BaseType) -> bool:
    if base_type.invalid is None:
        return isinstance(value, float) and math.isnan(value)
    return value == base_type.invalid


def decode_value(raw: bytes, base_type_id: int, endian: str = "<"):
    """Decode one field's bytes; returns None for invalid sentinels or unknown types."""
    base_type = BASE_TYPES.get(base_type_id & BASE_TYPE_NUMBER_MASK)
    if base_type is None:
        return None

    if base_type.fmt is None:
        text = raw.split(b"\x00", 1)[0].decode("utf-8", errors="replace")
        return text or None

    if base_type.name == "byte":
        if not raw or all(b == 0xFF for b in raw):
            return None
        return raw[0] if len(raw) == 1 else bytes(raw)

    if len(raw) < base_type.size or len(raw) % base_type.size:
        return None

    count = len(raw) // base_type.size
    values = struct.unpack(f"{endian}{count}{base_type.fmt}", raw)
    valid = [v for v in values if not _is_invalid(v, base_type)]
    if not valid:
        return None
    if count == 1:
        return valid[0]
    return tuple(valid)


class FITDecoder:
    """
    Decode FIT activity buffers.

    All decoding state lives in a per-call ``_DecodeState`` so one decoder can
    be shared between threads.
    """

    def __init__(self, settings: Optional[DecoderSettings] = None):
        self.settings = settings or DecoderSettings()

    def decode(self, buffer: bytes) -> Optional[DecodeResult]:
        """Decode a buffer, returning None when it is not a usable FIT activity."""
        try:
            return self.decode_strict(buffer)
        except FITDecodeError as e:
            logger.error(f"FIT decode failed: {e}")
            return None

    def decode_strict(self, buffer: bytes) -> DecodeResult:
        """Decode a buffer, raising FITDecodeError on structural failure."""
        buffer = bytes(buffer) if buffer is not None else b""
        header = self._parse_header(buffer)
        state = _DecodeState()

        end = min(header.payload_end, len(buffer))
        truncated = header.payload_end > len(buffer)
        try:
            self._read_messages(buffer, header.header_size, end, state)
        except _TruncatedMessage as e:
            truncated = True
            logger.warning(f"FIT stream truncated: {e}; keeping {len(state.records)} records")

        if not state.records:
            raise FITDecodeError("No record messages found")

        meta: Dict[str, Any] = {
            "file_id": state.file_id,
            "message_counts": {
                MESSAGE_NAMES.get(num, f"mesg_{num}"): count
                for num, count in sorted(state.message_counts.items())
            },
            "unknown_messages": sorted(n for n in state.message_counts if n not in MESSAGE_NAMES),
            "session_count": state.message_counts.get(MESG_SESSION, 0),
            "lap_count": state.message_counts.get(MESG_LAP, 0),
            "crc_valid": self._check_crc(buffer, header),
            "header_crc_valid": self._check_header_crc(buffer, header),
        }

        channels = project_channels(state.records, self.settings)
        logger.debug(
            f"Decoded {len(state.records)} records, channels: {', '.join(channels.available()) or 'none'}"
        )
        return DecodeResult(
            header=header,
            records=state.records,
            channels=channels,
            developer_fields=state.developer_fields,
            developer_data_ids=state.developer_data_ids,
            meta=meta,
            truncated=truncated,
        )

    def _parse_header(self, buffer: bytes) -> FitHeader:
        if not buffer:
            raise FITDecodeError("Empty buffer")

        header_size = buffer[0]
        if header_size not in VALID_HEADER_SIZES:
            raise FITDecodeError(f"Unsupported header size: {header_size}")
        if len(buffer) < header_size:
            raise FITDecodeError(f"Buffer shorter than its {header_size}-byte header")

        protocol_version, profile_version, data_size, data_type = struct.unpack_from("<BHI4s", buffer, 1)
        if data_type != FIT_SIGNATURE:
            raise FITDecodeError(f"Invalid FIT signature: {data_type!r}")

        header_crc = struct.unpack_from("<H", buffer, 12)[0] if header_size == 14 else None
        return FitHeader(
            header_size=header_size,
            protocol_version=protocol_version,
            profile_version=profile_version,
            data_size=data_size,
            data_type=data_type,
            header_crc=header_crc,
        )

    def _check_crc(self, buffer: bytes, header: FitHeader) -> Optional[bool]:
        end = header.payload_end
        if not self.settings.check_crc or len(buffer) < end + 2:
            return None
        expected = struct.unpack_from("<H", buffer, end)[0]
        valid = fit_crc16(buffer[:end]) == expected
        if not valid:
            logger.warning(f"FIT file CRC mismatch (stored 0x{expected:04X})")
        return valid

    def _check_header_crc(self, buffer: bytes, header: FitHeader) -> Optional[bool]:
        if not self.settings.check_crc or not header.header_crc:
            return None
        return fit_crc16(buffer[:12]) == header.header_crc

    @staticmethod
    def _require(pos: int, size: int, end: int):
        if pos + size > end:
            raise _TruncatedMessage(f"need {size} bytes at offset {pos}, stream ends at {end}")

    def _read_messages(self, buf: bytes, pos: int, end: int, state: _DecodeState):
        while pos < end:
            record_header = buf[pos]
            pos += 1

            if record_header & COMPRESSED_HEADER_MASK:
                local_type = (record_header >> COMPRESSED_LOCAL_TYPE_SHIFT) & COMPRESSED_LOCAL_TYPE_MASK
                definition = state.definitions.get(local_type)
                if definition is None:
                    logger.debug(f"Compressed header for undefined local type {local_type} at {pos - 1}")
                    continue
                if state.last_timestamp is not None:
                    state.last_timestamp += record_header & COMPRESSED_TIME_MASK
                pos = self._read_data_message(buf, pos, end, definition, state)
            elif record_header & DEFINITION_MASK:
                pos = self._read_definition(buf, pos, end, record_header, state)
            else:
                local_type = record_header & LOCAL_TYPE_MASK
                definition = state.definitions.get(local_type)
                if definition is None:
                    logger.debug(f"Data message for undefined local type {local_type} at {pos - 1}")
                    continue
                pos = self._read_data_message(buf, pos, end, definition, state)

    def _read_definition(self, buf: bytes, pos: int, end: int, record_header: int,
                         state: _DecodeState) -> int:
        self._require(pos, 5, end)
        little_endian = buf[pos + 1] == 0
        endian = "<" if little_endian else ">"
        global_number = struct.unpack_from(f"{endian}H", buf, pos + 2)[0]
        n_fields = buf[pos + 4]
        pos += 5

        self._require(pos, 3 * n_fields, end)
        fields = [FieldDefinition(buf[p], buf[p + 1], buf[p + 2]) for p in range(pos, pos + 3 * n_fields, 3)]
        pos += 3 * n_fields

        developer_fields: List[DeveloperFieldDefinition] = []
        if record_header & DEVELOPER_DATA_MASK:
            self._require(pos, 1, end)
            n_dev = buf[pos]
            pos += 1
            self._require(pos, 3 * n_dev, end)
            developer_fields = [
                DeveloperFieldDefinition(buf[p], buf[p + 1], buf[p + 2])
                for p in range(pos, pos + 3 * n_dev, 3)
            ]
            pos += 3 * n_dev

        state.definitions[record_header & LOCAL_TYPE_MASK] = MessageDefinition(
            global_message_number=global_number,
            little_endian=little_endian,
            fields=fields,
            developer_fields=developer_fields,
        )
        return pos

    def _read_data_message(self, buf: bytes, pos: int, end: int, definition: MessageDefinition,
                           state: _DecodeState) -> int:
        self._require(pos, definition.data_size, end)
        endian = "<" if definition.little_endian else ">"
        global_number = definition.global_message_number
        decode_all = global_number in _DECODED_MESSAGES

        values: Dict[int, Any] = {}
        for fd in definition.fields:
            if decode_all or fd.number == TIMESTAMP_FIELD:
                value = decode_value(buf[pos:pos + fd.size], fd.base_type, endian)
                if value is not None:
                    values[fd.number] = value
            pos += fd.size

        developer_values: List[Tuple[DeveloperFieldDefinition, bytes]] = []
        for dd in definition.developer_fields:
            developer_values.append((dd, buf[pos:pos + dd.size]))
            pos += dd.size

        timestamp = values.get(TIMESTAMP_FIELD)
        if isinstance(timestamp, int):
            state.last_timestamp = timestamp

        state.message_counts[global_number] += 1

        if global_number == MESG_RECORD:
            record = self._build_record(values, developer_values, endian, state)
            if record:
                state.records.append(record)
        elif global_number == MESG_FIELD_DESCRIPTION:
            self._register_field_description(values, state)
        elif global_number == MESG_DEVELOPER_DATA_ID:
            self._register_developer_data_id(values, state)
        elif global_number == MESG_FILE_ID:
            for number, name in FILE_ID_FIELDS.items():
                if number in values:
                    state.file_id[name] = values[number]
            if isinstance(state.file_id.get("time_created"), int):
                state.file_id["time_created"] = fit_timestamp_to_datetime(state.file_id["time_created"])
        return pos

    def _build_record(self, values: Dict[int, Any], developer_values, endian: str,
                      state: _DecodeState) -> Dict[str, Any]:
        record: Dict[str, Any] = {}
        # records without their own timestamp take the most recent one
        if state.last_timestamp is not None:
            record["timestamp"] = fit_timestamp_to_datetime(state.last_timestamp)

        for number, raw in values.items():
            name = RECORD_FIELDS.get(number)
            if name is None or name == "timestamp" or not isinstance(raw, (int, float)):
                continue
            if name == "position_lat":
                record["lat"] = semicircles_to_degrees(raw)
            elif name == "position_long":
                record["lon"] = semicircles_to_degrees(raw)
            elif name == "speed":
                record.setdefault("speed", speed_to_kmh(raw))
            elif name == "enhanced_speed":
                record["speed"] = speed_to_kmh(raw)
            elif name == "altitude":
                record.setdefault("altitude", altitude_to_m(raw))
            elif name == "enhanced_altitude":
                record["altitude"] = altitude_to_m(raw, enhanced=True)
            elif name == "distance":
                record["distance"] = distance_to_m(raw)
            else:
                record[name] = raw

        for dd, raw in developer_values:
            name, value = self._decode_developer_value(dd, raw, endian, state)
            if value is not None:
                record.setdefault(name, value)
        return record

    def _decode_developer_value(self, dd: DeveloperFieldDefinition, raw: bytes, endian: str,
                                state: _DecodeState):
        descriptor = state.developer_fields.get((dd.developer_data_index, dd.number))
        fallback_name = f"dev_{dd.developer_data_index}_{dd.number}"

        if descriptor is not None and descriptor.base_type is not None:
            value = decode_value(raw, descriptor.base_type, endian)
        else:
            guess = BASE_TYPE_BY_NAME[_SIZE_GUESSES.get(len(raw), "string")]
            value = decode_value(raw, guess.number, endian)

        if descriptor is None:
            return fallback_name, value

        if isinstance(value, (int, float)) and (descriptor.scale or descriptor.offset):
            value = value / (descriptor.scale or 1) - (descriptor.offset or 0)
        return descriptor.name or fallback_name, value

    def _register_field_description(self, values: Dict[int, Any], state: _DecodeState):
        fields = {name: values.get(number) for number, name in FIELD_DESCRIPTION_FIELDS.items()}
        index = fields["developer_data_index"]
        number = fields["field_definition_number"]
        if not isinstance(index, int) or not isinstance(number, int):
            logger.debug("Ignoring field description without index/number")
            return

        base_type = fields["fit_base_type_id"]
        name = fields["field_name"] if isinstance(fields["field_name"], str) else f"dev_{index}_{number}"
        state.developer_fields[(index, number)] = DeveloperFieldDescriptor(
            developer_data_index=index,
            field_number=number,
            name=name,
            base_type=base_type if isinstance(base_type, int) else None,
            units=fields["units"] if isinstance(fields["units"], str) else None,
            scale=fields["scale"],
            offset=fields["offset"],
        )

    def _register_developer_data_id(self, values: Dict[int, Any], state: _DecodeState):
        fields = {name: values.get(number) for number, name in DEVELOPER_DATA_ID_FIELDS.items()}
        index = fields["developer_data_index"]
        if not isinstance(index, int):
            return

        def _as_bytes(value):
            if value is None or isinstance(value, bytes):
                return value
            if isinstance(value, int):
                return bytes([value & 0xFF])
            return bytes(value)

        state.developer_data_ids[index] = DeveloperDataId(
            developer_data_index=index,
            application_id=_as_bytes(fields["application_id"]),
            developer_id=_as_bytes(fields["developer_id"]),
            manufacturer_id=fields["manufacturer_id"],
            application_version=fields["application_version"],
        )


def decode_fit_bytes(buffer: bytes, settings: Optional[DecoderSettings] = None) -> Optional[DecodeResult]:
    """Convenience function to decode a FIT buffer."""
    return FITDecoder(settings).decode(buffer)


def decode_fit_file(path: Union[str, Path], settings: Optional[DecoderSettings] = None) -> Optional[DecodeResult]:
    """Read and decode a FIT file from disk."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"FIT file not found: {path}")
    return decode_fit_bytes(path.read_bytes(), settings)
