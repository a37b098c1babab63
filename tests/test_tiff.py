import struct
from datetime import datetime

import pytest

from metastruct.enum import Compliant
from metastruct.meta import Endianess
from metastruct.fields import Rational
from metastruct.tags import DirectoryIdentifier, TagIFDBaseline, TagIFDExif, TagIFDGPS, UnknownTag
from metastruct.tiff import read_tiff, TiffReader
from metastruct.exceptions import (
    MalformedValueException,
    TypeConversionException,
    UnpackException,
    UnsupportedFormatException,
)


MARKS = {
    '<': b'II',
    '>': b'MM',
}


def ifd_size(entries):
    out_of_line = sum(len(payload) for _, _, _, payload in entries if len(payload) > 4)
    return 2 + len(entries) * 12 + 4 + out_of_line


def build_ifd(order, offset, entries, next_offset=0):
    '''Returns the IFD placed at "offset" followed by its out of line values.'''
    data_offset = offset + 2 + len(entries) * 12 + 4

    head = struct.pack(order + 'H', len(entries))
    data = b''
    for tag, field_type, count, payload in entries:
        if len(payload) <= 4:
            value = payload.ljust(4, b'\x00')
        else:
            value = struct.pack(order + 'I', data_offset + len(data))
            data += payload
        head += struct.pack(order + 'HHI', tag, field_type, count) + value

    return head + struct.pack(order + 'I', next_offset) + data


def build_header(order, first_offset=8, version=42):
    return MARKS[order] + struct.pack(order + 'HI', version, first_offset)


def build_tiff(order):
    def ifd0_entries(exif_offset, gps_offset):
        return [
            (0x010F, 2, 6, b'Canon\x00'),
            (0x0112, 3, 1, struct.pack(order + 'H', 1)),
            (0x011A, 5, 1, struct.pack(order + 'II', 72, 1)),
            (0x8769, 4, 1, struct.pack(order + 'I', exif_offset)),
            (0x8825, 4, 1, struct.pack(order + 'I', gps_offset)),
            (0xBEEF, 3, 1, struct.pack(order + 'H', 7)),
        ]

    exif_entries = [
        (0x9003, 2, 20, b'2023:01:24 16:02:54\x00'),
        (0xA002, 4, 1, struct.pack(order + 'I', 4000)),
    ]
    gps_entries = [
        (0x0000, 1, 4, b'\x02\x03\x00\x00'),
        (0x0001, 2, 2, b'N\x00'),
        (0x0002, 5, 3, struct.pack(order + '6I', 51, 1, 30, 1, 1234, 100)),
    ]
    ifd1_entries = [
        (0x0103, 3, 1, struct.pack(order + 'H', 6)),
    ]

    exif_offset = 8 + ifd_size(ifd0_entries(0, 0))
    gps_offset = exif_offset + ifd_size(exif_entries)
    ifd1_offset = gps_offset + ifd_size(gps_entries)

    return b''.join([
        build_header(order),
        build_ifd(order, 8, ifd0_entries(exif_offset, gps_offset), ifd1_offset),
        build_ifd(order, exif_offset, exif_entries),
        build_ifd(order, gps_offset, gps_entries),
        build_ifd(order, ifd1_offset, ifd1_entries),
    ])


@pytest.mark.parametrize('order,endianess', [
    ('<', Endianess.LITTLE_ENDIAN),
    ('>', Endianess.BIG_ENDIAN),
])
def test_read_tiff(order, endianess):
    metadata = read_tiff(build_tiff(order))

    assert metadata.endianess == endianess
    assert [_.directory_type for _ in metadata] == [
        DirectoryIdentifier.IFD0,
        DirectoryIdentifier.EXIF,
        DirectoryIdentifier.GPS,
        DirectoryIdentifier.IFD1,
    ]
    assert all(_.frozen for _ in metadata)

    ifd0 = metadata.directory(DirectoryIdentifier.IFD0)
    assert ifd0.get_string(TagIFDBaseline.MAKE) == 'Canon'
    assert ifd0.get_int(TagIFDBaseline.ORIENTATION) == 1
    assert ifd0.get_rational(TagIFDBaseline.X_RESOLUTION) == Rational(72, 1)
    assert ifd0.find(0xBEEF).tag == UnknownTag(0xBEEF, DirectoryIdentifier.IFD0)

    exif = metadata.directory(DirectoryIdentifier.EXIF)
    assert exif.get_date(TagIFDExif.DATE_TIME_ORIGINAL) == datetime(2023, 1, 24, 16, 2, 54)
    assert exif.get_long(TagIFDExif.PIXEL_X_DIMENSION) == 4000
    with pytest.raises(TypeConversionException):
        exif.get_int(TagIFDExif.PIXEL_X_DIMENSION)

    gps = metadata.directory(DirectoryIdentifier.GPS)
    assert gps.get_string(TagIFDGPS.GPS_LATITUDE_REF) == 'N'
    assert gps.get_raw_bytes(TagIFDGPS.GPS_VERSION_ID) == b'\x02\x03\x00\x00'
    assert gps.find(0x0002).value.values == (Rational(51, 1), Rational(30, 1), Rational(1234, 100))

    ifd1 = metadata.directory(DirectoryIdentifier.IFD1)
    assert ifd1.get_int(TagIFDBaseline.COMPRESSION) == 6

    assert metadata.directory(DirectoryIdentifier.INTEROP) is None


def test_read_tiff_with_base():
    data = b'Exif\x00\x00' + build_tiff('<')

    metadata = read_tiff(data, base=6)

    assert len(metadata) == 4
    assert metadata.directory(DirectoryIdentifier.IFD0).get_string(TagIFDBaseline.MAKE) == 'Canon'


def test_wrong_byte_order_mark():
    with pytest.raises(MalformedValueException):
        read_tiff(b'XX\x2a\x00\x08\x00\x00\x00')


def test_wrong_magic():
    with pytest.raises(MalformedValueException):
        read_tiff(build_header('<', version=41))


def test_big_tiff():
    with pytest.raises(UnsupportedFormatException):
        read_tiff(build_header('<', version=43))


def _tiff_with_unknown_type():
    entries = [
        (0x010F, 99, 1, b'\x00'),
        (0x0112, 3, 1, struct.pack('<H', 3)),
    ]
    return build_header('<') + build_ifd('<', 8, entries)


def test_unknown_field_type_is_skipped():
    metadata = read_tiff(_tiff_with_unknown_type())

    ifd0 = metadata.directory(DirectoryIdentifier.IFD0)
    assert not ifd0.contains(TagIFDBaseline.MAKE)
    assert ifd0.get_int(TagIFDBaseline.ORIENTATION) == 3


def test_unknown_field_type_compliant():
    reader = TiffReader(_tiff_with_unknown_type(), compliant=Compliant.FIELD_TYPE)

    with pytest.raises(UnpackException):
        reader.read()


def _tiff_with_wrong_offset():
    entry = struct.pack('<HHII', 0x010F, 2, 100, 0x1000)
    return build_header('<') + struct.pack('<H', 1) + entry + struct.pack('<I', 0)


def test_out_of_bounds_offset_is_skipped():
    metadata = read_tiff(_tiff_with_wrong_offset())

    assert metadata.directory(DirectoryIdentifier.IFD0).is_empty()


def test_out_of_bounds_offset_compliant():
    with pytest.raises(UnpackException):
        read_tiff(_tiff_with_wrong_offset(), compliant=Compliant.OFFSET)


def test_directory_loop():
    data = build_header('<') + build_ifd('<', 8, [], next_offset=8)

    with pytest.raises(UnpackException):
        read_tiff(data)


def _tiff_with_rational_pointer():
    entries = [
        (0x0112, 3, 1, struct.pack('<H', 1)),
        (0x8769, 5, 1, struct.pack('<II', 8, 1)),
    ]
    return build_header('<') + build_ifd('<', 8, entries)


def test_pointer_with_wrong_type_is_skipped():
    metadata = read_tiff(_tiff_with_rational_pointer())

    assert [_.directory_type for _ in metadata] == [DirectoryIdentifier.IFD0]

    ifd0 = metadata.directory(DirectoryIdentifier.IFD0)
    assert ifd0.contains(TagIFDBaseline.EXIF_POINTER)
    assert ifd0.get_int(TagIFDBaseline.ORIENTATION) == 1


def test_pointer_with_wrong_type_compliant():
    with pytest.raises(UnpackException) as excinfo:
        read_tiff(_tiff_with_rational_pointer(), compliant=Compliant.OFFSET)

    assert 'EXIF_POINTER' in str(excinfo.value)
