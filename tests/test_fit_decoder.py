import struct

import numpy as np
import pytest

from fit_builder import BASE_TIMESTAMP, STRING, FitBuilder, activity_bytes, fit_time
from training_signals.core.fit_decoder import FITDecodeError, FITDecoder, decode_fit_bytes, decode_fit_file
from training_signals.core.fit_profile import fit_crc16
from training_signals.utils.config import DecoderSettings


def _records(data):
    result = decode_fit_bytes(data)
    assert result is not None
    return result.records


def test_heart_rate_gap_is_interpolated():
    data = activity_bytes([{"heart_rate": 130}, {"heart_rate": None}, {"heart_rate": 140}])
    result = decode_fit_bytes(data)

    hr = result.channels.heart_rate
    assert list(hr.values) == [130, 135, 140]
    assert list(hr.time) == [0, 1, 2]
    assert "heart_rate" not in result.records[1]


@pytest.mark.parametrize(
    "data",
    [
        b"",
        bytes([13]) + b"\x00" * 20,
        bytes([14, 0x20, 0, 0, 0]),
        struct.pack("<BBHI4s", 12, 0x10, 100, 0, b".FTT"),
    ],
)
def test_structural_failures_return_none(data):
    assert decode_fit_bytes(data) is None


def test_decode_strict_raises_on_bad_signature():
    data = bytearray(activity_bytes([{"heart_rate": 120}]))
    data[8:12] = b"XFIT"
    with pytest.raises(FITDecodeError, match="signature"):
        FITDecoder().decode_strict(bytes(data))


def test_file_without_records_fails():
    builder = FitBuilder()
    builder.define(0, 0, [(0, 1, 0x00), (1, 2, 0x84)])
    builder.data(0, [4, 1])
    assert decode_fit_bytes(builder.build()) is None
    with pytest.raises(FITDecodeError, match="No record"):
        FITDecoder().decode_strict(builder.build())


def test_header_fields_and_file_id_meta():
    result = decode_fit_bytes(activity_bytes([{"heart_rate": 120}] * 3))

    assert result.header.header_size == 14
    assert result.header.protocol_version == 0x20
    assert result.header.profile_version == 2132
    assert result.meta["file_id"]["manufacturer"] == 1
    assert result.meta["file_id"]["serial_number"] == 123456
    assert result.meta["file_id"]["time_created"] == fit_time(BASE_TIMESTAMP)
    assert result.meta["message_counts"]["record"] == 3
    assert result.start_time == fit_time(BASE_TIMESTAMP)
    assert result.duration_s == 2


def test_twelve_byte_header_is_accepted():
    builder = FitBuilder(header_size=12)
    builder.define_record(0, ["timestamp", "power"])
    builder.record(0, timestamp=BASE_TIMESTAMP, power=250)
    records = _records(builder.build())
    assert records[0]["power"] == 250


def test_semantic_conversions():
    records = _records(
        activity_bytes(
            [
                {
                    "position_lat": 2 ** 30,
                    "position_long": -(2 ** 30),
                    "speed": 2778,
                    "altitude": 3000,
                    "distance": 12345,
                }
            ]
        )
    )
    record = records[0]
    assert record["timestamp"] == fit_time(BASE_TIMESTAMP)
    assert record["lat"] == pytest.approx(90.0)
    assert record["lon"] == pytest.approx(-90.0)
    assert record["speed"] == pytest.approx(10.0008)
    assert record["altitude"] == pytest.approx(100.0)
    assert record["distance"] == pytest.approx(123.45)


@pytest.mark.parametrize(
    "names",
    [
        ["timestamp", "enhanced_speed", "speed", "enhanced_altitude", "altitude"],
        ["timestamp", "speed", "enhanced_speed", "altitude", "enhanced_altitude"],
    ],
)
def test_enhanced_fields_win_regardless_of_order(names):
    sample = {"speed": 1000, "enhanced_speed": 5000, "altitude": 3000, "enhanced_altitude": 3000}
    record = _records(activity_bytes([sample], names=names))[0]
    assert record["speed"] == pytest.approx(18.0)
    assert record["altitude"] == pytest.approx(600.0)


def test_invalid_sentinel_depends_on_base_type():
    record = _records(activity_bytes([{"power": 255, "heart_rate": 0xFF, "cadence": 80}]))[0]
    assert record["power"] == 255
    assert record["cadence"] == 80
    assert "heart_rate" not in record


def test_big_endian_definition():
    builder = FitBuilder()
    builder.define_record(0, ["timestamp", "power", "heart_rate"], big_endian=True)
    builder.record(0, timestamp=BASE_TIMESTAMP, power=300, heart_rate=150)
    record = _records(builder.build())[0]
    assert record["power"] == 300
    assert record["heart_rate"] == 150
    assert record["timestamp"] == fit_time(BASE_TIMESTAMP)


def test_compressed_timestamps_advance_from_last_timestamp():
    builder = FitBuilder()
    builder.define_record(0, ["timestamp", "heart_rate"])
    builder.record(0, timestamp=BASE_TIMESTAMP, heart_rate=120)
    builder.define_record(1, ["heart_rate"])
    builder.record(1, compressed_offset=1, heart_rate=121)
    builder.record(1, compressed_offset=2, heart_rate=122)
    builder.record(1, heart_rate=123)

    records = _records(builder.build())
    assert [r["heart_rate"] for r in records] == [120, 121, 122, 123]
    assert records[1]["timestamp"] == fit_time(BASE_TIMESTAMP + 1)
    assert records[2]["timestamp"] == fit_time(BASE_TIMESTAMP + 3)
    assert records[3]["timestamp"] == fit_time(BASE_TIMESTAMP + 3)


def test_invalid_heart_rate_inside_record_definition_is_interpolated():
    builder = FitBuilder()
    builder.define_record(0, ["timestamp", "heart_rate", "power"])
    for i, hr in enumerate([120, 125, 130, 0xFF, 140]):
        builder.record(0, timestamp=BASE_TIMESTAMP + i, heart_rate=hr, power=200 + i)

    result = decode_fit_bytes(builder.build())
    assert result.header.header_size == 14
    assert "heart_rate" not in result.records[3]
    assert list(result.channels.heart_rate.values) == [120, 125, 130, 135, 140]
    assert list(result.channels.heart_rate.time) == [0, 1, 2, 3, 4]
    assert list(result.channels.power.values) == [200, 201, 202, 203, 204]


def test_record_without_timestamp_takes_the_latest_one():
    builder = FitBuilder()
    builder.define_record(0, ["timestamp", "heart_rate"])
    builder.define_record(1, ["heart_rate"])
    builder.record(0, timestamp=BASE_TIMESTAMP, heart_rate=120)
    builder.record(1, heart_rate=130)
    builder.record(0, timestamp=BASE_TIMESTAMP + 2, heart_rate=140)

    result = decode_fit_bytes(builder.build())
    assert result.records[1]["timestamp"] == fit_time(BASE_TIMESTAMP)
    hr = result.channels.heart_rate
    assert list(hr.values) == [120, 130, 140]
    assert list(hr.time) == [0, 0, 2]


def test_other_message_timestamps_feed_compressed_records():
    builder = FitBuilder()
    builder.define_record(0, ["timestamp", "heart_rate"])
    builder.record(0, timestamp=BASE_TIMESTAMP, heart_rate=120)
    builder.define(2, 21, [(253, 4, 0x86), (0, 1, 0x00)])
    builder.data(2, [BASE_TIMESTAMP + 10, 0])
    builder.define_record(1, ["heart_rate"])
    builder.record(1, compressed_offset=1, heart_rate=125)

    result = decode_fit_bytes(builder.build())
    assert result.records[-1]["timestamp"] == fit_time(BASE_TIMESTAMP + 11)
    assert result.meta["message_counts"]["event"] == 1


def test_developer_fields_use_descriptions_and_fallback_names():
    builder = FitBuilder()
    builder.define(2, 207, [(3, 1, 0x02), (1, 16, 0x0D), (2, 2, 0x84)])
    builder.data(2, [0, tuple(range(16)), 255])
    builder.define(3, 206, [(0, 1, 0x02), (1, 1, 0x02), (2, 1, 0x02), (3, 16, STRING), (8, 8, STRING)])
    builder.data(3, [0, 0, 0x84, "running_power", "W"])
    builder.define_record(0, ["timestamp", "heart_rate"], dev_fields=[(0, 2, 0), (5, 1, 0)])
    builder.record(0, timestamp=BASE_TIMESTAMP, heart_rate=150, dev_values=[250, 7])

    result = decode_fit_bytes(builder.build())
    record = result.records[0]
    assert record["running_power"] == 250
    assert record["dev_0_5"] == 7
    assert record["heart_rate"] == 150

    descriptor = result.developer_fields[(0, 0)]
    assert descriptor.name == "running_power"
    assert descriptor.units == "W"
    developer = result.developer_data_ids[0]
    assert developer.application_id == bytes(range(16))
    assert developer.manufacturer_id == 255


def test_developer_field_scale_and_offset():
    builder = FitBuilder()
    builder.define(3, 206, [(0, 1, 0x02), (1, 1, 0x02), (2, 1, 0x02), (3, 8, STRING), (6, 1, 0x02), (7, 1, 0x01)])
    builder.data(3, [0, 1, 0x84, "ratio", 10, 5])
    builder.define_record(0, ["timestamp"], dev_fields=[(1, 2, 0)])
    builder.record(0, timestamp=BASE_TIMESTAMP, dev_values=[120])

    record = _records(builder.build())[0]
    assert record["ratio"] == pytest.approx(120 / 10 - 5)


def test_unknown_messages_and_undefined_slots_are_skipped():
    builder = FitBuilder()
    builder.define(2, 1234, [(0, 4, 0x86)])
    builder.data(2, [42])
    builder.raw(b"\x05")
    builder.define_record(0, ["timestamp", "power"])
    builder.record(0, timestamp=BASE_TIMESTAMP, power=200)
    builder.record(0, timestamp=BASE_TIMESTAMP + 1, power=210)

    result = decode_fit_bytes(builder.build())
    assert [r["power"] for r in result.records] == [200, 210]
    assert result.meta["unknown_messages"] == [1234]


def test_redefining_a_slot_replaces_the_layout():
    builder = FitBuilder()
    builder.define_record(0, ["timestamp", "power"])
    builder.record(0, timestamp=BASE_TIMESTAMP, power=200)
    builder.define_record(0, ["timestamp", "heart_rate", "cadence"])
    builder.record(0, timestamp=BASE_TIMESTAMP + 1, heart_rate=140, cadence=85)

    records = _records(builder.build())
    assert records[0] == {"timestamp": fit_time(BASE_TIMESTAMP), "power": 200}
    assert records[1]["heart_rate"] == 140
    assert records[1]["cadence"] == 85


def test_truncated_stream_keeps_complete_records():
    data = activity_bytes([{"heart_rate": 120 + i} for i in range(10)])
    result = decode_fit_bytes(data[:-5])

    assert result is not None
    assert result.truncated
    assert [r["heart_rate"] for r in result.records] == list(range(120, 129))


@pytest.mark.parametrize("kept", [1, 5, 10])
def test_prefix_at_message_boundary_yields_prefix_of_records(kept):
    builder = FitBuilder()
    builder.define_record(0, ["timestamp", "power"])
    for i in range(10):
        builder.record(0, timestamp=BASE_TIMESTAMP + i, power=100 + i)

    full = _records(builder.build())
    prefix = builder.header() + bytes(builder.body[: builder.boundaries[kept]])
    assert _records(prefix) == full[:kept]


def test_crc_checked_but_not_fatal():
    data = activity_bytes([{"power": 200}] * 5)
    result = decode_fit_bytes(data)
    assert result.meta["crc_valid"] is True
    assert result.meta["header_crc_valid"] is True

    corrupted = data[:-1] + bytes([data[-1] ^ 0xFF])
    result = decode_fit_bytes(corrupted)
    assert result is not None
    assert result.meta["crc_valid"] is False

    unchecked = FITDecoder(DecoderSettings(check_crc=False)).decode(corrupted)
    assert unchecked.meta["crc_valid"] is None


def test_crc_matches_reference_check_value():
    assert fit_crc16(b"123456789") == 0xBB3D


def test_decoding_is_repeatable(ride_bytes):
    decoder = FITDecoder()
    first = decoder.decode(ride_bytes)
    second = decoder.decode(ride_bytes)
    assert first.records == second.records
    assert np.array_equal(first.channels.power.values, second.channels.power.values)


def test_channels_are_aligned(ride_bytes):
    channels = decode_fit_bytes(ride_bytes).channels
    assert set(channels.available()) == {"heartRate", "power", "cadence", "speed", "pace"}
    for stream in channels.as_dict().values():
        assert len(stream.values) == len(stream.time)
    assert channels.avg_cadence == 90
    assert channels.pace.values[0] == pytest.approx(2.0, abs=1e-3)


def test_decode_fit_file(fit_file, tmp_path):
    result = decode_fit_file(fit_file)
    assert len(result.records) == 600

    with pytest.raises(FileNotFoundError):
        decode_fit_file(tmp_path / "missing.fit")
