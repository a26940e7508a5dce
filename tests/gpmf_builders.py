"""Build synthetic GPMF payloads for tests."""

import struct

GPS5_SCAL = (10000000, 10000000, 1000, 1000, 100)
GPS9_SCAL = (10000000, 10000000, 1000, 1000, 100, 1, 1000, 100, 1)
GPS9_TYPE = "lllllllSS"


def klv(key: str, type_char: str, struct_size: int, repeat: int, data: bytes) -> bytes:
    header = (
        key.encode("latin1")
        + type_char.encode("latin1")
        + bytes([struct_size])
        + struct.pack(">H", repeat)
    )
    item = header + data
    return item + b"\x00" * ((4 - len(item) % 4) % 4)


def nest(key: str, *children: bytes) -> bytes:
    data = b"".join(children)
    return klv(key, "\x00", 1, len(data), data)


def device(*stream_items: bytes) -> bytes:
    """Wrap items in ``DEVC > STRM``."""
    return nest("DEVC", nest("STRM", *stream_items))


def gpsu(text: str) -> bytes:
    return klv("GPSU", "U", 16, 1, text.encode("ascii"))


def gpsf(fix: int) -> bytes:
    return klv("GPSF", "L", 4, 1, struct.pack(">I", fix))


def gpsp(precision: int) -> bytes:
    return klv("GPSP", "S", 2, 1, struct.pack(">H", precision))


def scal(*divisors: int) -> bytes:
    return klv("SCAL", "l", 4, len(divisors), struct.pack(">" + "i" * len(divisors), *divisors))


def gps5(samples: list[tuple[float, ...]]) -> bytes:
    """SCAL + GPS5 items for (lat, lon, alt, speed2d, speed3d) samples."""
    raw = b"".join(
        struct.pack(">5i", *(round(v * s) for v, s in zip(sample, GPS5_SCAL)))
        for sample in samples
    )
    return scal(*GPS5_SCAL) + klv("GPS5", "l", 20, len(samples), raw)


def gps9(samples: list[tuple[float, ...]]) -> bytes:
    """TYPE + SCAL + GPS9 items.

    Each sample is (lat, lon, alt, speed2d, speed3d, days, seconds, dop, fix).
    """
    raw = b"".join(
        struct.pack(">7i2H", *(round(v * s) for v, s in zip(sample, GPS9_SCAL)))
        for sample in samples
    )
    return (
        klv("TYPE", "c", len(GPS9_TYPE), 1, GPS9_TYPE.encode("ascii"))
        + scal(*GPS9_SCAL)
        + klv("GPS9", "?", 32, len(samples), raw)
    )


def legacy_payload(
    samples: list[tuple[float, ...]],
    time: str = "220301100000.000",
    fix: int = 3,
    precision: int = 150,
) -> bytes:
    return device(
        klv("STNM", "c", 12, 1, b"GPS (Lat.) ["),
        gpsf(fix),
        gpsu(time),
        gpsp(precision),
        gps5(samples),
    )


def unified_payload(samples: list[tuple[float, ...]]) -> bytes:
    return device(gps9(samples))
