import math
import struct
from datetime import datetime

import pytest

from metastruct.meta import Endianess
from metastruct.fields import FieldType, Rational
from metastruct.tags import DirectoryIdentifier, TagIFDBaseline, TagIFDExif
from metastruct.directory import Directory, DirectoryEntry
from metastruct.exceptions import (
    FrozenDirectoryException,
    MalformedValueException,
    MissingTagException,
    TypeConversionException,
)


def make_entry(tag, field_type, count, raw, offset=0, endianess=Endianess.BIG_ENDIAN):
    return DirectoryEntry.create(tag, field_type, count, offset, raw, endianess)


def make_directory(*entries, directory_type=DirectoryIdentifier.IFD0):
    directory = Directory(directory_type)
    for entry in entries:
        directory.add(entry)

    return directory


def test_entry_is_immutable():
    entry = make_entry(TagIFDBaseline.ORIENTATION, FieldType.SHORT, 1, b'\x00\x01\x00\x00')

    with pytest.raises(AttributeError):
        entry.count = 3

    assert entry.value.value == 1
    assert entry.tag_id == 0x0112
    assert entry.is_inline
    assert not entry.is_sequence
    assert entry.payload == b'\x00\x01'


def test_entry_out_of_line():
    entry = make_entry(TagIFDBaseline.X_RESOLUTION, FieldType.RATIONAL, 1,
                       b'\x00\x00\x00\x48\x00\x00\x00\x01', offset=0x200)

    assert not entry.is_inline
    assert entry.byte_length == 8
    assert entry.offset == 0x200


def test_add_contains_remove():
    entry = make_entry(TagIFDBaseline.MAKE, FieldType.ASCII, 6, b'Canon\x00', offset=0x100)
    directory = make_directory(entry)

    assert directory.contains(TagIFDBaseline.MAKE)
    assert TagIFDBaseline.MAKE in directory
    assert entry in directory
    assert directory.size() == 1
    assert not directory.is_empty()

    assert directory.remove(entry)

    assert not directory.contains(TagIFDBaseline.MAKE)
    assert directory.is_empty()


def test_remove_needs_the_same_entry():
    stored = make_entry(TagIFDBaseline.ORIENTATION, FieldType.SHORT, 1, b'\x00\x01\x00\x00')
    other = make_entry(TagIFDBaseline.ORIENTATION, FieldType.SHORT, 1, b'\x00\x03\x00\x00')
    directory = make_directory(stored)

    assert not directory.contains(other)
    assert not directory.remove(other)
    assert directory.contains(TagIFDBaseline.ORIENTATION)
    assert directory.find(0x0112) is stored


def test_add_replaces_in_place():
    directory = make_directory(
        make_entry(TagIFDBaseline.MAKE, FieldType.ASCII, 6, b'Canon\x00'),
        make_entry(TagIFDBaseline.MODEL, FieldType.ASCII, 4, b'EOS\x00'),
        make_entry(TagIFDBaseline.SOFTWARE, FieldType.ASCII, 4, b'1.0\x00'),
    )

    directory.add(make_entry(TagIFDBaseline.MAKE, FieldType.ASCII, 6, b'Nikon\x00'))

    assert directory.size() == 3
    assert [_.tag for _ in directory] == [
        TagIFDBaseline.MAKE,
        TagIFDBaseline.MODEL,
        TagIFDBaseline.SOFTWARE,
    ]
    assert directory.get_string(TagIFDBaseline.MAKE) == 'Nikon'


def test_add_entry_uses_the_directory_byte_order():
    directory = Directory(DirectoryIdentifier.IFD0, endianess=Endianess.LITTLE_ENDIAN)

    directory.add_entry(TagIFDBaseline.ORIENTATION, FieldType.SHORT, 1, 6, b'\x06\x00\x00\x00')

    assert directory.get_int(TagIFDBaseline.ORIENTATION) == 6


def test_frozen_directory():
    entry = make_entry(TagIFDBaseline.ORIENTATION, FieldType.SHORT, 1, b'\x00\x01\x00\x00')
    directory = make_directory(entry).freeze()

    assert directory.frozen

    with pytest.raises(FrozenDirectoryException):
        directory.add(entry)

    with pytest.raises(FrozenDirectoryException):
        directory.remove(entry)

    assert directory.get_int(TagIFDBaseline.ORIENTATION) == 1


def test_get_int():
    directory = make_directory(
        make_entry(TagIFDBaseline.ORIENTATION, FieldType.SHORT, 1, b'\x00\x01\x00\x00'),
        make_entry(TagIFDExif.EXPOSURE_PROGRAM, FieldType.SSHORT, 1, struct.pack('>h', -2) + b'\x00\x00'),
    )

    assert directory.get_int(TagIFDBaseline.ORIENTATION) == 1
    assert directory.get_int(TagIFDExif.EXPOSURE_PROGRAM) == -2


def test_get_int_refuses_unsigned_long():
    directory = make_directory(
        make_entry(TagIFDExif.PIXEL_X_DIMENSION, FieldType.LONG, 1, b'\xff\xff\xff\xff'),
    )

    with pytest.raises(TypeConversionException):
        directory.get_int(TagIFDExif.PIXEL_X_DIMENSION)

    assert directory.get_long(TagIFDExif.PIXEL_X_DIMENSION) == 4294967295


def test_get_rational():
    directory = make_directory(
        make_entry(TagIFDBaseline.X_RESOLUTION, FieldType.RATIONAL, 1,
                   b'\x00\x00\x00\x01\x00\x00\x00\x02', offset=0x200),
        make_entry(TagIFDBaseline.ORIENTATION, FieldType.SHORT, 1, b'\x00\x01\x00\x00'),
    )

    rational = directory.get_rational(TagIFDBaseline.X_RESOLUTION)

    assert rational == Rational(1, 2)
    assert tuple(rational) == (1, 2)
    assert directory.get_double(TagIFDBaseline.X_RESOLUTION) == 0.5
    assert directory.get_float(TagIFDBaseline.X_RESOLUTION) == 0.5

    with pytest.raises(TypeConversionException):
        directory.get_int(TagIFDBaseline.X_RESOLUTION)

    with pytest.raises(TypeConversionException):
        directory.get_rational(TagIFDBaseline.ORIENTATION)


def test_numeric_accessors_on_sequences():
    directory = make_directory(
        make_entry(TagIFDBaseline.BITS_PER_SAMPLE, FieldType.SHORT, 3, b'\x00\x08' * 3, offset=0x300),
    )

    with pytest.raises(TypeConversionException):
        directory.get_long(TagIFDBaseline.BITS_PER_SAMPLE)

    with pytest.raises(TypeConversionException):
        directory.get_int(TagIFDBaseline.BITS_PER_SAMPLE)

    assert directory.get_string(TagIFDBaseline.BITS_PER_SAMPLE) == '8 8 8'


def test_integer_accessors_on_nan_and_infinity():
    directory = make_directory(
        make_entry(TagIFDExif.EXPOSURE_TIME, FieldType.FLOAT, 1, struct.pack('>f', float('nan'))),
        make_entry(TagIFDExif.FOCAL_LENGTH, FieldType.DOUBLE, 1, struct.pack('>d', float('inf')), offset=0x100),
        directory_type=DirectoryIdentifier.EXIF,
    )

    with pytest.raises(TypeConversionException):
        directory.get_long(TagIFDExif.EXPOSURE_TIME)

    with pytest.raises(TypeConversionException):
        directory.get_long(TagIFDExif.FOCAL_LENGTH)

    assert math.isnan(directory.get_double(TagIFDExif.EXPOSURE_TIME))
    assert directory.get_float(TagIFDExif.FOCAL_LENGTH) == float('inf')


def test_get_float_out_of_single_precision_range():
    directory = make_directory(
        make_entry(TagIFDExif.FOCAL_LENGTH, FieldType.DOUBLE, 1, struct.pack('>d', 1e300), offset=0x100),
        directory_type=DirectoryIdentifier.EXIF,
    )

    assert directory.get_double(TagIFDExif.FOCAL_LENGTH) == 1e300

    with pytest.raises(TypeConversionException):
        directory.get_float(TagIFDExif.FOCAL_LENGTH)


def test_get_double_on_text():
    directory = make_directory(make_entry(TagIFDBaseline.MAKE, FieldType.ASCII, 4, b'abc\x00'))

    with pytest.raises(TypeConversionException):
        directory.get_double(TagIFDBaseline.MAKE)


def test_get_date():
    directory = make_directory(
        make_entry(TagIFDExif.DATE_TIME_ORIGINAL, FieldType.ASCII, 20, b'2023:01:24 16:02:54\x00', offset=0x100),
        make_entry(TagIFDExif.DATE_TIME_DIGITIZED, FieldType.ASCII, 11, b'2023-01-24\x00', offset=0x120),
        directory_type=DirectoryIdentifier.EXIF,
    )

    assert directory.get_date(TagIFDExif.DATE_TIME_ORIGINAL) == datetime(2023, 1, 24, 16, 2, 54)

    with pytest.raises(MalformedValueException):
        directory.get_date(TagIFDExif.DATE_TIME_DIGITIZED)


def test_get_date_out_of_range():
    directory = make_directory(
        make_entry(TagIFDBaseline.DATE_TIME, FieldType.ASCII, 20, b'2023:13:24 16:02:54\x00', offset=0x100),
    )

    with pytest.raises(MalformedValueException):
        directory.get_date(TagIFDBaseline.DATE_TIME)


def test_get_string_of_undefined_text():
    directory = make_directory(
        make_entry(TagIFDExif.USER_COMMENT, FieldType.UNDEFINED, 13, b'ASCII\x00\x00\x00hello', offset=0x100),
        make_entry(TagIFDExif.MAKER_NOTE, FieldType.UNDEFINED, 3, b'\x01\x02\x03\x00'),
        directory_type=DirectoryIdentifier.EXIF,
    )

    assert directory.get_string(TagIFDExif.USER_COMMENT) == 'hello'
    assert directory.get_string(TagIFDExif.MAKER_NOTE) == '010203'


def test_get_raw_bytes():
    directory = make_directory(
        make_entry(TagIFDExif.MAKER_NOTE, FieldType.UNDEFINED, 6, b'\x01\x02\x03\x04\x05\x06', offset=0x100),
        directory_type=DirectoryIdentifier.EXIF,
    )

    assert directory.get_raw_bytes(TagIFDExif.MAKER_NOTE) == b'\x01\x02\x03\x04\x05\x06'
    assert directory.get_raw_bytes(TagIFDExif.USER_COMMENT) == b''


@pytest.mark.parametrize('accessor', [
    'get_int',
    'get_long',
    'get_double',
    'get_float',
    'get_rational',
    'get_string',
    'get_date',
])
def test_missing_tag(accessor):
    directory = Directory(DirectoryIdentifier.EXIF)

    with pytest.raises(MissingTagException) as excinfo:
        getattr(directory, accessor)(TagIFDExif.DATE_TIME_ORIGINAL)

    assert 'DATE_TIME_ORIGINAL' in str(excinfo.value)
    assert DirectoryIdentifier.EXIF.description in str(excinfo.value)


def test_report():
    directory = make_directory(
        make_entry(TagIFDBaseline.MAKE, FieldType.ASCII, 6, b'Canon\x00', offset=0x100),
        make_entry(TagIFDBaseline.ORIENTATION, FieldType.SHORT, 1, b'\x00\x01\x00\x00', offset=0x10000),
        make_entry(TagIFDBaseline.BITS_PER_SAMPLE, FieldType.SHORT, 3, b'\x00\x08' * 3, offset=0x200),
    )

    report = directory.report()

    assert report.count('[Directory Type]') == 3
    assert '0x010F (271)' in report
    assert 'Canon' in report
    assert '[Multiple values]' in report
    # only the entries stored out of line have a jump offset
    assert report.count('[Jump Offset]') == 2
    assert '0x0100' in report
    assert '0x0200' in report
