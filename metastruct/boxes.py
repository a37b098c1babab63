'''
# ISO Base Media File Format boxes

Format used by MP4 and HEIF/HEIC files: the file is a sequence of boxes,
each one starting with a common header

    size (4 bytes) | type (4 bytes) [| largesize (8 bytes)] [| usertype (16 bytes)]

where a size of 1 means that the actual size is in "largesize" and a size of
0 means that the box extends to the end of the data. Boxes of the "container"
category contain other boxes.

"Full" boxes add a sub-header right after the common one

    version (1 byte) | flags (3 bytes)

All the integers are big-endian. The structure is described in ISO/IEC
14496-12, section 4.2 "Object Structure"; the HEIF boxes are in ISO/IEC 23008-12.

The tree of boxes is kept in a flat arena (BoxTree) where each node refers to
its parent by index.
'''
import logging
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from bitstring import BitArray

from .meta import Endianess
from .streams import SequentialReader
from .exceptions import (
    BoundsException,
    BoxUnpackException,
    MalformedValueException,
    UnpackException,
)


logger = logging.getLogger(__name__)

BOX_HEADER_LENGTH = 8
FULL_BOX_HEADER_LENGTH = 4
USER_TYPE_LENGTH = 16


class BoxCategory(Enum):
    ATOMIC    = 'atomic'
    CONTAINER = 'container'
    UNKNOWN   = 'unknown'


class BoxType(Enum):
    '''Catalogue of the known box types: (fourcc, category, is a full box)'''

    FILE_TYPE                 = ('ftyp', BoxCategory.ATOMIC,    False)
    METADATA                  = ('meta', BoxCategory.CONTAINER, True)
    HANDLER                   = ('hdlr', BoxCategory.ATOMIC,    True)
    PRIMARY_ITEM              = ('pitm', BoxCategory.ATOMIC,    True)
    ITEM_LOCATION             = ('iloc', BoxCategory.ATOMIC,    True)
    ITEM_INFO                 = ('iinf', BoxCategory.CONTAINER, True)
    ITEM_INFO_ENTRY           = ('infe', BoxCategory.ATOMIC,    True)
    ITEM_REFERENCE            = ('iref', BoxCategory.CONTAINER, True)
    ITEM_PROTECTION           = ('ipro', BoxCategory.CONTAINER, True)
    ITEM_DATA                 = ('idat', BoxCategory.ATOMIC,    False)
    ITEM_PROPERTIES           = ('iprp', BoxCategory.CONTAINER, False)
    ITEM_PROPERTY_CONTAINER   = ('ipco', BoxCategory.CONTAINER, False)
    ITEM_PROPERTY_ASSOCIATION = ('ipma', BoxCategory.ATOMIC,    True)
    DATA_INFORMATION          = ('dinf', BoxCategory.CONTAINER, False)
    DATA_REFERENCE            = ('dref', BoxCategory.CONTAINER, True)
    DATA_ENTRY_URL            = ('url ', BoxCategory.ATOMIC,    True)
    DATA_ENTRY_URN            = ('urn ', BoxCategory.ATOMIC,    True)
    IMAGE_SPATIAL_EXTENTS     = ('ispe', BoxCategory.ATOMIC,    True)
    PIXEL_INFO                = ('pixi', BoxCategory.ATOMIC,    True)
    AUXILIARY_TYPE_PROPERTY   = ('auxC', BoxCategory.ATOMIC,    True)
    IMAGE_ROTATION            = ('irot', BoxCategory.ATOMIC,    False)
    IMAGE_MIRROR              = ('imir', BoxCategory.ATOMIC,    False)
    COLOUR_INFO               = ('colr', BoxCategory.ATOMIC,    False)
    CLEAN_APERTURE            = ('clap', BoxCategory.ATOMIC,    False)
    PIXEL_ASPECT_RATIO        = ('pasp', BoxCategory.ATOMIC,    False)
    HVC1                      = ('hvc1', BoxCategory.ATOMIC,    False)
    HEVC_CONFIGURATION        = ('hvcC', BoxCategory.ATOMIC,    False)
    MEDIA_DATA                = ('mdat', BoxCategory.ATOMIC,    False)
    FREE_SPACE                = ('free', BoxCategory.ATOMIC,    False)
    UUID                      = ('uuid', BoxCategory.ATOMIC,    False)
    UNKNOWN                   = ('\x00\x00\x00\x00', BoxCategory.UNKNOWN, False)

    def __new__(cls, fourcc, category, is_full):
        obj = object.__new__(cls)
        obj._value_ = fourcc
        obj.category = category
        obj.is_full = is_full
        return obj

    @property
    def fourcc(self) -> str:
        return self.value

    @property
    def is_container(self) -> bool:
        return self.category == BoxCategory.CONTAINER

    @classmethod
    def from_fourcc(cls, fourcc: str) -> 'BoxType':
        try:
            return cls(fourcc)
        except ValueError:
            return cls.UNKNOWN


# containers that have an entry count between the sub-header and the children,
# the value is the width of the count for version 0 and for the other versions
_ENTRY_COUNT_WIDTH = {
    BoxType.ITEM_INFO:       (2, 4),
    BoxType.DATA_REFERENCE:  (4, 4),
    BoxType.ITEM_PROTECTION: (2, 2),
}


class Box(object):
    '''A node of the box tree.

    The node doesn't own any data: it records where it is in the region
    ("start" and "end") and the range of bytes its own fields were decoded
    from ("segment"). "depth" is given by the parent and it's used only to
    indent the log.'''

    def __init__(self, size: int, fourcc: str, start: int, depth: int = 0, user_type: Optional[str] = None):
        self.size = size
        self.fourcc = fourcc
        self.start = start
        self.depth = depth
        self.user_type = user_type
        self.index: Optional[int] = None
        self.parent: Optional[int] = None
        self._segment_start: Optional[int] = None
        self._segment_end: Optional[int] = None

    @classmethod
    def read_header(cls, reader: SequentialReader, depth: int = 0) -> 'Box':
        '''Decode the common header at the current position of the reader.'''
        start = reader.tell()

        size = reader.read_unsigned_int(Endianess.BIG_ENDIAN)
        if 1 < size < BOX_HEADER_LENGTH:
            raise MalformedValueException(
                'inconsistent box size %d at 0x%x, it should be at least %d bytes' % (size, start, BOX_HEADER_LENGTH))

        fourcc = reader.read_bytes(4).decode('latin1')

        if size == 1:
            size = reader.read_unsigned_long(Endianess.BIG_ENDIAN)
            if size < BOX_HEADER_LENGTH + 8:
                raise MalformedValueException('inconsistent large box size %d at 0x%x' % (size, start))
        elif size == 0:
            size = reader.length() - start

        user_type = None
        if fourcc == BoxType.UUID.fourcc:
            user_type = reader.read_bytes(USER_TYPE_LENGTH).hex()

        box = cls(size, fourcc, start, depth=depth, user_type=user_type)
        box.mark_segment(start)
        box.commit_segment(reader.tell())

        return box

    def __repr__(self):
        return '<%s(\'%s\', start=0x%x, size=%d, depth=%d)>' % (
            self.__class__.__name__, self.fourcc, self.start, self.size, self.depth)

    @property
    def box_type(self) -> BoxType:
        return BoxType.from_fourcc(self.fourcc)

    @property
    def end(self) -> int:
        return self.start + self.size

    def mark_segment(self, position: int) -> None:
        self._segment_start = position

    def commit_segment(self, position: int) -> None:
        self._segment_end = position

    @property
    def segment(self) -> Tuple[Optional[int], Optional[int]]:
        '''The [start, end) range of the fields decoded by this node.'''
        return self._segment_start, self._segment_end

    @property
    def segment_length(self) -> int:
        return self._segment_end - self._segment_start

    def available(self, reader: SequentialReader) -> int:
        '''Bytes of this box still to be read from the current position.'''
        return self.end - reader.tell()

    def payload(self, reader: SequentialReader) -> bytes:
        '''The bytes that follow the decoded fields up to the end of the box.'''
        return reader.peek_bytes(self._segment_end, self.end - self._segment_end)

    def describe(self) -> str:
        return '%s \'%s\' (%s)' % (self.__class__.__name__, self.fourcc, self.box_type.category.value)

    def log_box_info(self) -> None:
        logger.debug('%s%s', '\t' * self.depth, self.describe())


class FullBox(Box):
    '''A box with the version/flags sub-header.

    The 24 bits of flags are exposed as the raw bytes, as a bit array where
    index 0 is the least significant bit of the last byte, and as an integer.'''

    def __init__(self, box: Box, reader: SequentialReader):
        super().__init__(box.size, box.fourcc, box.start, depth=box.depth, user_type=box.user_type)
        self.index = box.index
        self.parent = box.parent

        self.mark_segment(reader.tell())

        self.version = reader.read_byte()
        raw = reader.read_bytes(3)

        # BitArray stores the most significant bit first, the flags count from
        # the least significant: reversing the whole array puts bit 0 at index 0
        self._flags = BitArray(bytes=raw)
        self._flags.reverse()

        self.commit_segment(reader.tell())

    @property
    def flag_bits(self) -> BitArray:
        return BitArray(self._flags)

    @property
    def flag_bytes(self) -> bytes:
        bits = BitArray(self._flags)
        bits.reverse()
        return bits.bytes

    @property
    def flags(self) -> int:
        result = 0
        for index, byte in enumerate(reversed(self.flag_bytes)):
            result |= byte << (8 * index)

        return result

    @property
    def flags_binary(self) -> str:
        bits = BitArray(self._flags)
        bits.reverse()
        return bits.bin

    def is_flag_set(self, mask: int) -> bool:
        return (self.flags & mask) != 0

    def describe(self) -> str:
        return '%s \'%s\':v%d flags:0x%06X (%s)' % (
            self.__class__.__name__, self.fourcc, self.version, self.flags, self.box_type.category.value)


class BoxTree(object):
    '''Flat arena of the boxes, in file order; nodes refer to their parent by index.'''

    def __init__(self):
        self._nodes: List[Box] = []
        self._children: List[List[int]] = []
        self._roots: List[int] = []

    def __len__(self):
        return len(self._nodes)

    def __iter__(self) -> Iterator[Box]:
        return iter(self._nodes)

    def __getitem__(self, index: int) -> Box:
        return self._nodes[index]

    def add(self, box: Box, parent: Optional[int] = None) -> int:
        if parent is not None and not 0 <= parent < len(self._nodes):
            raise IndexError('parent %d is not in the tree' % parent)

        index = len(self._nodes)
        box.index = index
        box.parent = parent

        self._nodes.append(box)
        self._children.append([])

        if parent is None:
            self._roots.append(index)
        else:
            self._children[parent].append(index)

        return index

    def replace(self, index: int, box: Box) -> None:
        '''Substitute the node at "index" keeping its place in the tree.'''
        old = self._nodes[index]
        box.index = index
        box.parent = old.parent
        self._nodes[index] = box

    def roots(self) -> List[Box]:
        return [self._nodes[_] for _ in self._roots]

    def children(self, index: int) -> List[Box]:
        return [self._nodes[_] for _ in self._children[index]]

    def parent_of(self, index: int) -> Optional[Box]:
        parent = self._nodes[index].parent
        return self._nodes[parent] if parent is not None else None

    def ancestors(self, index: int) -> List[Box]:
        '''From the parent up to the root.'''
        result = []
        parent = self.parent_of(index)
        while parent is not None:
            result.append(parent)
            parent = self.parent_of(parent.index)

        return result

    def find(self, fourcc: str) -> List[Box]:
        return [_ for _ in self._nodes if _.fourcc == fourcc]

    def dump(self) -> str:
        return '\n'.join('%s%s' % ('\t' * _.depth, _.describe()) for _ in self._nodes)


class BoxReader(object):
    '''Builds the BoxTree of the boxes contained in "data" starting at "base".'''

    def __init__(self, data, base=0):
        self.reader = SequentialReader(data, base=base, endianess=Endianess.BIG_ENDIAN)

    def read(self) -> BoxTree:
        tree = BoxTree()
        self.reader.seek(0)
        self._read_children(tree, None, self.reader.length())

        return tree

    def _read_children(self, tree: BoxTree, parent: Optional[int], end: int) -> None:
        while self.reader.tell() < end:
            self._read_box(tree, parent, end)

        if self.reader.tell() != end:
            raise BoxUnpackException('mismatch in expected size: read up to 0x%x instead of 0x%x' % (
                self.reader.tell(), end))

    def _read_box(self, tree: BoxTree, parent: Optional[int], container_end: int) -> None:
        depth = 0 if parent is None else tree[parent].depth + 1

        try:
            box = Box.read_header(self.reader, depth=depth)
        except (BoundsException, MalformedValueException) as e:
            raise BoxUnpackException(str(e)) from e

        if box.end > container_end:
            raise BoxUnpackException('box ends at 0x%x, beyond its container end 0x%x' % (box.end, container_end),
                                     chain=[box.fourcc])

        index = tree.add(box, parent)
        box_type = box.box_type

        try:
            if box_type.is_full:
                box = FullBox(box, self.reader)
                tree.replace(index, box)

            box.log_box_info()

            if box_type.is_container:
                self._read_entry_count(box)
                self._read_children(tree, index, box.end)
            else:
                self.reader.seek(box.end)
        except (UnpackException, BoundsException) as e:
            chain = e.chain if isinstance(e, BoxUnpackException) else []
            chain.insert(0, box.fourcc)
            raise BoxUnpackException(e.message, chain=chain) from e

    def _read_entry_count(self, box: Box) -> None:
        widths = _ENTRY_COUNT_WIDTH.get(box.box_type)
        if widths is None:
            return

        width = widths[0] if box.version == 0 else widths[1]
        count = self.reader.read_unsigned_short() if width == 2 else self.reader.read_unsigned_int()

        logger.debug('%s\'%s\' declares %d entries', '\t' * (box.depth + 1), box.fourcc, count)


def parse_boxes(data, base=0) -> BoxTree:
    '''Shortcut for BoxReader(data, base).read()'''
    return BoxReader(data, base=base).read()
