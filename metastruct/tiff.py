'''
# Tagged Image File Format

The header is 8 bytes long: the byte order mark ("II" for little-endian,
"MM" for big-endian), the magic number 42 and the offset of the first IFD.

Each Image File Directory is a 2-byte count of entries, followed by the
12-byte entries and by the 4-byte offset of the next IFD (0 terminates the
chain). An entry is

    tag (2 bytes) | field type (2 bytes) | count (4 bytes) | value or offset (4 bytes)

where the last field holds the value itself when it fits in 4 bytes,
otherwise the offset of the value. All the offsets are relative to the start
of the header, which for EXIF embedded in JPEG is right after "Exif\\0\\0".

Some tags point to private directories (Exif, GPS, Interoperability) that
are walked too.

The specification is at <https://www.itu.int/itudoc/itu-t/com16/tiff-fx/docs/tiff6.pdf>.
'''
import logging
from typing import Iterator, List, Optional

from .enum import Compliant
from .meta import Endianess
from .streams import SequentialReader
from .fields import FieldType
from .directory import Directory, ENTRY_MAX_VALUE_LENGTH
from .tags import DirectoryIdentifier, TagIFDBaseline, TagIFDExif, lookup_tag
from .exceptions import (
    BoundsException,
    MalformedValueException,
    UnpackException,
    UnsupportedFormatException,
)


logger = logging.getLogger(__name__)

TIFF_STANDARD_VERSION = 42
TIFF_BIG_VERSION = 43
ENTRY_LENGTH = 12

BYTE_ORDER_MARKS = {
    b'II': Endianess.LITTLE_ENDIAN,
    b'MM': Endianess.BIG_ENDIAN,
}

# tags whose value is the offset of another directory
SUB_DIRECTORIES = {
    TagIFDBaseline.SUB_IFDS.number_id:          DirectoryIdentifier.SUBIFD,
    TagIFDBaseline.EXIF_POINTER.number_id:      DirectoryIdentifier.EXIF,
    TagIFDBaseline.GPS_INFO_POINTER.number_id:  DirectoryIdentifier.GPS,
    TagIFDExif.INTEROPERABILITY_POINTER.number_id: DirectoryIdentifier.INTEROP,
}
POINTER_FIELD_TYPES = (FieldType.LONG, FieldType.IFD)


class TiffMetadata(object):
    '''The result of walking a TIFF structure: its byte order and its directories.'''

    def __init__(self, endianess: Endianess, directories: List[Directory]):
        self.endianess = endianess
        self.directories = tuple(directories)

    def __repr__(self):
        return '<%s(%s, [%s])>' % (
            self.__class__.__name__,
            self.endianess.name,
            ', '.join(_.directory_type.name for _ in self.directories),
        )

    def __iter__(self) -> Iterator[Directory]:
        return iter(self.directories)

    def __len__(self):
        return len(self.directories)

    def directory(self, identifier: DirectoryIdentifier) -> Optional[Directory]:
        '''The first directory of the given type, None if missing.'''
        for directory in self.directories:
            if directory.directory_type == identifier:
                return directory

        return None


class TiffReader(object):
    '''Walks the IFDs of a TIFF structure starting at "base" inside "data".

    With the default Compliant.NONE malformed entries are logged and skipped,
    Compliant.FIELD_TYPE and Compliant.OFFSET turn the respective problem into
    an UnpackException.'''

    def __init__(self, data, base=0, compliant=Compliant.NONE):
        self.reader = SequentialReader(data, base=base)
        self.compliant = compliant
        self._directories: List[Directory] = []
        self._visited = set()

    def read(self) -> TiffMetadata:
        self._directories = []
        self._visited = set()

        first_offset = self.read_header()
        self._walk(DirectoryIdentifier.IFD0, first_offset)

        return TiffMetadata(self.reader.endianess, self._directories)

    def read_header(self) -> int:
        '''Set the byte order of the reader and return the offset of IFD0.'''
        self.reader.seek(0)
        mark = self.reader.read_bytes(2)

        try:
            self.reader.endianess = BYTE_ORDER_MARKS[mark]
        except KeyError:
            raise MalformedValueException('unknown byte order mark %r' % mark) from None

        logger.debug('byte order %s', self.reader.endianess.name)

        version = self.reader.read_unsigned_short()
        if version == TIFF_BIG_VERSION:
            raise UnsupportedFormatException('BigTIFF (version 43) is not supported')
        elif version != TIFF_STANDARD_VERSION:
            raise MalformedValueException('undefined TIFF magic number %d' % version)

        return self.reader.read_unsigned_int()

    def _walk(self, directory_type: DirectoryIdentifier, offset: int) -> None:
        while True:
            next_offset = self._read_directory(directory_type, offset)

            if next_offset == 0:
                return

            if next_offset <= offset or next_offset >= self.reader.length():
                raise UnpackException('next IFD offset 0x%04x is invalid' % next_offset,
                                      chain=[directory_type.name])

            try:
                directory_type = directory_type.next_directory()
            except ValueError as e:
                raise UnpackException(str(e), chain=[directory_type.name]) from e

            offset = next_offset

    def _read_directory(self, directory_type: DirectoryIdentifier, offset: int) -> int:
        '''Unpack the directory at "offset", its sub-directories and return the offset of the next one.'''
        if offset in self._visited:
            raise UnpackException('directory at 0x%04x already visited' % offset, chain=[directory_type.name])
        self._visited.add(offset)

        logger.debug('unpacking directory %s at 0x%04x', directory_type.name, offset)

        try:
            self.reader.seek(offset)
            n_entries = self.reader.read_unsigned_short()
        except BoundsException as e:
            raise UnpackException('invalid offset 0x%04x for directory' % offset,
                                  chain=[directory_type.name]) from e

        directory = Directory(directory_type, endianess=self.reader.endianess)
        self._directories.append(directory)

        for index in range(n_entries):
            self._read_entry(directory, offset + 2 + index * ENTRY_LENGTH)

        self.reader.seek(offset + 2 + n_entries * ENTRY_LENGTH)
        next_offset = self.reader.read_unsigned_int()

        directory.freeze()
        logger.debug('directory %s has %d entries', directory_type.name, len(directory))

        for entry in directory:
            sub_type = SUB_DIRECTORIES.get(entry.tag_id)
            if sub_type is None or entry.value is None:
                continue

            if entry.field_type not in POINTER_FIELD_TYPES:
                msg = 'tag %s has type %s, it cannot point to a directory' % (entry.tag.name, entry.field_type.name)
                if self.compliant & Compliant.OFFSET:
                    raise UnpackException(msg, chain=[directory_type.name])
                logger.warning('%s. Skipped', msg)
                continue

            # SubIFDs can list more than one offset
            offsets = entry.value.values if entry.value.is_sequence else (entry.value.value,)
            for sub_offset in offsets:
                with self.reader.preserve():
                    self._read_directory(sub_type, sub_offset)

        return next_offset

    def _read_entry(self, directory: Directory, position: int) -> None:
        reader = self.reader
        reader.seek(position)

        tag_id = reader.read_unsigned_short()
        tag = lookup_tag(tag_id, directory.directory_type)
        field_type = FieldType.from_code(reader.read_unsigned_short())
        count = reader.read_unsigned_int()
        value_field = reader.read_bytes(4)
        offset = reader.read_u32(position + 8)

        byte_length = field_type.byte_length(count)

        if field_type == FieldType.ERROR or byte_length == 0:
            msg = 'invalid type %s detected in tag %s' % (field_type.name, tag.name)
            if self.compliant & Compliant.FIELD_TYPE:
                raise UnpackException(msg, chain=[directory.directory_type.name])
            logger.warning('%s. Skipped', msg)
            return

        if byte_length > ENTRY_MAX_VALUE_LENGTH:
            try:
                raw = reader.peek_bytes(offset, byte_length)
            except BoundsException as e:
                msg = 'offset 0x%04x out of bounds for tag %s' % (offset, tag.name)
                if self.compliant & Compliant.OFFSET:
                    raise UnpackException(msg, chain=[directory.directory_type.name]) from e
                logger.warning('%s. Skipped', msg)
                return
        else:
            raw = value_field

        directory.add_entry(tag, field_type, count, offset, raw)


def read_tiff(data, base=0, **kwargs) -> TiffMetadata:
    '''Shortcut for TiffReader(data, base, ...).read()'''
    return TiffReader(data, base=base, **kwargs).read()
