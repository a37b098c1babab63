"""
Directories of tagged entries, as found in TIFF/EXIF Image File Directories.

A Directory is built incrementally during a single parse pass (add/remove) and
then frozen: from that point on it is a read-only handle that can be shared
between readers.

The typed accessors (get_int(), get_string(), ...) consider the requested tag
mandatory and raise MissingTagException when it is absent; get_raw_bytes() is
the only exception since it's used for optional embedded blocks.
"""
import logging
import re
import struct
from datetime import datetime
from enum import Enum, auto
from typing import Dict, Iterator, Optional, Union

from .meta import Endianess
from .fields import FieldKind, FieldType, Rational, DecodedValue
from .tags import DirectoryIdentifier, Taggable
from .exceptions import (
    FrozenDirectoryException,
    MalformedValueException,
    MissingTagException,
    TypeConversionException,
)


logger = logging.getLogger(__name__)

# payloads longer than this don't fit the 4-byte value field of the entry
# record and are stored elsewhere, the field holding their offset
ENTRY_MAX_VALUE_LENGTH = 4

DATE_FORMAT = '%Y:%m:%d %H:%M:%S'
_DATE_PATTERN = re.compile(r'^\d{4}:\d{2}:\d{2} \d{2}:\d{2}:\d{2}$')

# the 8-byte header in front of EXIF text stored as UNDEFINED (e.g. UserComment)
_CHARACTER_CODES = {
    b'ASCII\x00\x00\x00': 'ascii',
    b'UTF-8\x00\x00\x00': 'utf-8',
    b'\x00\x00\x00\x00\x00\x00\x00\x00': 'utf-8',
}
_CHARACTER_CODE_LENGTH = 8


class DirectoryPhase(Enum):
    '''Enum to state the actual phase of a directory'''
    BUILDING = 0
    DONE     = auto()


class DirectoryEntry(object):
    '''One decoded IFD record. Instances are immutable.

    "offset" is the raw 4-byte value field of the record read as an unsigned
    integer: when the payload doesn't fit in it, it's the absolute offset of
    the payload. "raw" are the payload bytes (None if not available) and
    "value" is the decoded result.
    '''

    __slots__ = ('_tag', '_field_type', '_count', '_offset', '_raw', '_value')

    def __init__(self, tag: Taggable, field_type: FieldType, count: int, offset: int,
                 raw: Optional[bytes], value: Optional[DecodedValue]):
        self._tag = tag
        self._field_type = field_type
        self._count = count
        self._offset = offset
        self._raw = bytes(raw) if raw is not None else None
        self._value = value

    @classmethod
    def create(cls, tag: Taggable, field_type: FieldType, count: int, offset: int,
               raw: Optional[bytes], endianess: Endianess = Endianess.BIG_ENDIAN) -> 'DirectoryEntry':
        '''Build an entry decoding "raw" with the given byte order.'''
        value = None
        if raw and field_type != FieldType.ERROR:
            value = field_type.decode(raw, count, endianess)

        return cls(tag, field_type, count, offset, raw, value)

    def __setattr__(self, name, value):
        if hasattr(self, '_value'):
            raise AttributeError('%s is immutable' % self.__class__.__name__)
        super().__setattr__(name, value)

    tag = property(lambda self: self._tag)
    field_type = property(lambda self: self._field_type)
    count = property(lambda self: self._count)
    offset = property(lambda self: self._offset)
    raw = property(lambda self: self._raw)
    value = property(lambda self: self._value)

    @property
    def tag_id(self) -> int:
        return self._tag.number_id

    @property
    def byte_length(self) -> int:
        return self._field_type.byte_length(self._count)

    @property
    def is_inline(self) -> bool:
        return self.byte_length <= ENTRY_MAX_VALUE_LENGTH

    @property
    def is_sequence(self) -> bool:
        return self._value is not None and self._value.is_sequence

    @property
    def payload(self) -> bytes:
        '''The bytes of the value, without the padding of the inline field.'''
        if self._raw is None:
            return b''
        return self._raw[:self.byte_length]

    def _key(self):
        return (self._tag, self._field_type, self._count, self._offset, self._raw)

    def __eq__(self, other):
        if not isinstance(other, DirectoryEntry):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    def __repr__(self):
        return '<%s(%s, %s, count=%d, value=%r)>' % (
            self.__class__.__name__,
            self._tag.name,
            self._field_type.name,
            self._count,
            self._value,
        )

    def __str__(self):
        lines = [
            '  %-20s 0x%04X (%d)' % ('[Tag ID]', self.tag_id, self.tag_id),
            '  %-20s %s' % ('[Tag Name]', self._tag.name),
            '  %-20s %s' % ('[Field Type]', self._field_type.name),
            '  %-20s %d' % ('[Count]', self._count),
            '  %-20s %s' % ('[Hint]', self._tag.hint.description),
        ]

        if not self.is_inline:
            lines.append('  %-20s 0x%04X' % ('[Jump Offset]', self._offset))

        return '\n'.join(lines)


TagOrEntry = Union[Taggable, DirectoryEntry]


class Directory(object):
    """Collection of entries of a single directory, keyed by tag ID.

    The entries keep the insertion order; adding an entry for a tag already
    present replaces the old one in place.
    """

    def __init__(self, directory_type: DirectoryIdentifier, endianess: Endianess = Endianess.BIG_ENDIAN):
        self.directory_type = directory_type
        self.endianess = endianess
        self._entries: Dict[int, DirectoryEntry] = {}
        self._phase = DirectoryPhase.BUILDING

    def __repr__(self):
        return '<%s(%s, entries=%d)>' % (self.__class__.__name__, self.directory_type.name, len(self))

    def __len__(self):
        return len(self._entries)

    def __iter__(self) -> Iterator[DirectoryEntry]:
        return iter(list(self._entries.values()))

    def __contains__(self, item):
        return self.contains(item)

    @property
    def frozen(self) -> bool:
        return self._phase == DirectoryPhase.DONE

    def freeze(self) -> 'Directory':
        '''Ends the parse pass: the directory can only be read from now on.'''
        self._phase = DirectoryPhase.DONE
        return self

    def _check_building(self):
        if self.frozen:
            raise FrozenDirectoryException('directory %s is read-only' % self.directory_type.description)

    def add(self, entry: DirectoryEntry) -> None:
        self._check_building()

        if entry.tag_id in self._entries:
            logger.debug('replacing entry for tag 0x%04x in %s', entry.tag_id, self.directory_type.name)

        self._entries[entry.tag_id] = entry

    def add_entry(self, tag: Taggable, field_type: FieldType, count: int, offset: int,
                  raw: Optional[bytes]) -> DirectoryEntry:
        '''Decode a record with the byte order of this directory and add it.'''
        entry = DirectoryEntry.create(tag, field_type, count, offset, raw, self.endianess)
        self.add(entry)

        return entry

    def remove(self, entry: DirectoryEntry) -> bool:
        '''Removes the entry only if the stored one for its tag is equal to it.'''
        self._check_building()

        if self._entries.get(entry.tag_id) != entry:
            return False

        del self._entries[entry.tag_id]

        return True

    def contains(self, item: TagOrEntry) -> bool:
        if isinstance(item, DirectoryEntry):
            return self._entries.get(item.tag_id) == item

        return item.number_id in self._entries

    def find(self, tag_id: int) -> Optional[DirectoryEntry]:
        return self._entries.get(tag_id)

    def size(self) -> int:
        return len(self._entries)

    def is_empty(self) -> bool:
        return not self._entries

    def _require(self, tag: Taggable) -> DirectoryEntry:
        entry = self._entries.get(tag.number_id)

        if entry is None or entry.value is None:
            raise MissingTagException('cannot find tag [%s] in directory [%s]' % (
                tag.name, self.directory_type.description))

        return entry

    def _require_scalar(self, tag: Taggable, entry: DirectoryEntry):
        if entry.value.is_sequence:
            raise TypeConversionException('tag [%s] holds %d values, not a single one' % (tag.name, entry.count))

        return entry.value.value

    def _require_number(self, tag: Taggable):
        entry = self._require(tag)

        if not entry.field_type.is_numeric:
            raise TypeConversionException('tag [%s] has non numeric type %s' % (tag.name, entry.field_type.name))

        return self._require_scalar(tag, entry)

    def get_int(self, tag: Taggable) -> int:
        entry = self._require(tag)

        if not entry.field_type.int_convertible:
            raise TypeConversionException('tag [%s] of type %s cannot be converted to a 32-bit integer' % (
                tag.name, entry.field_type.name))

        return _to_int(tag, self._require_scalar(tag, entry))

    def get_long(self, tag: Taggable) -> int:
        return _to_int(tag, self._require_number(tag))

    def get_double(self, tag: Taggable) -> float:
        return float(self._require_number(tag))

    def get_float(self, tag: Taggable) -> float:
        '''Like get_double() but rounded to single precision.'''
        value = self.get_double(tag)

        try:
            return struct.unpack('f', struct.pack('f', value))[0]
        except OverflowError as e:
            raise TypeConversionException('tag [%s] value %g is out of single precision range' % (tag.name, value)) from e

    def get_rational(self, tag: Taggable) -> Rational:
        entry = self._require(tag)
        value = entry.value.value if not entry.value.is_sequence else None

        if not isinstance(value, Rational):
            raise TypeConversionException('tag [%s] of type %s is not a single rational' % (
                tag.name, entry.field_type.name))

        return value

    def get_string(self, tag: Taggable) -> str:
        return self.to_string(self._require(tag))

    def get_date(self, tag: Taggable) -> datetime:
        '''Parses a "YYYY:MM:DD hh:mm:ss" value.'''
        text = self.get_string(tag).strip()

        if not _DATE_PATTERN.match(text):
            raise MalformedValueException('tag [%s] value \'%s\' is not a date' % (tag.name, text))

        try:
            return datetime.strptime(text, DATE_FORMAT)
        except ValueError as e:
            raise MalformedValueException('tag [%s] value \'%s\' is not a valid date' % (tag.name, text)) from e

    def get_raw_bytes(self, tag: Taggable) -> bytes:
        entry = self._entries.get(tag.number_id)

        if entry is None:
            return b''

        return entry.payload

    @staticmethod
    def to_string(entry: DirectoryEntry) -> str:
        if entry.value is None:
            return ''

        if entry.field_type.kind == FieldKind.UNDEFINED:
            return _decode_undefined_text(entry.value.value)

        return str(entry.value)

    def report(self) -> str:
        '''Human readable dump of every entry; arrays are not expanded.'''
        msg = []
        for entry in self:
            msg.append('  %-20s %s' % ('[Directory Type]', self.directory_type.description))
            msg.append(str(entry))

            if entry.value is None:
                value = '[Empty]'
            elif entry.is_sequence:
                value = '[Multiple values]'
            else:
                value = _summary(entry)

            msg.append('  %-20s %s' % ('[Value]', value))
            msg.append('')

        return '\n'.join(msg)


def _to_int(tag: Taggable, value) -> int:
    # NaN and infinities have no integer value
    try:
        return int(value)
    except (ValueError, OverflowError) as e:
        raise TypeConversionException('tag [%s] value %s cannot be converted to an integer' % (tag.name, value)) from e


def _decode_undefined_text(data: bytes) -> str:
    header = data[:_CHARACTER_CODE_LENGTH]

    if header in _CHARACTER_CODES:
        text = data[_CHARACTER_CODE_LENGTH:].split(b'\x00', 1)[0]
        return text.decode(_CHARACTER_CODES[header], errors='replace')

    return data.hex()


def _summary(entry: DirectoryEntry) -> str:
    kind = entry.field_type.kind
    value = entry.value.value

    if kind == FieldKind.TEXT:
        return value or '[Empty]'
    elif kind == FieldKind.UNDEFINED:
        return '[%d bytes]' % len(value)
    elif kind == FieldKind.RATIONAL:
        return '%s (%r)' % (value, value)
    elif kind == FieldKind.FLOAT:
        return '%g' % value

    return '%d (0x%X)' % (value, value & 0xFFFFFFFFFFFFFFFF)
