'''
Random access over an in-memory byte region.

All the reads are validated against the readable region: a read that would
cross its boundary raises BoundsException, there are no partial reads.
'''
import logging
import struct
import sys
from contextlib import contextmanager

from .meta import Endianess, struct_prefix
from .exceptions import BoundsException


logger = logging.getLogger(__name__)


class ByteCursor(object):
    '''Bounds-checked access to an immutable byte region starting at "base".

    The endianess is a property of the cursor that can be changed at any time
    and affects every subsequent multi-byte read.'''

    def __init__(self, buffer, base=0, endianess=Endianess.BIG_ENDIAN):
        if buffer is None:
            raise ValueError('input buffer cannot be None')

        buffer = bytes(buffer)

        if base < 0:
            raise BoundsException('base offset cannot be less than zero (found %d)' % base)

        if base > len(buffer):
            raise BoundsException('base offset %d exceeds buffer length %d' % (base, len(buffer)))

        self._buffer = buffer
        self._base = base
        self.endianess = endianess

    def __repr__(self):
        return '<%s(base=%d, length=%d, %s)>' % (
            self.__class__.__name__,
            self._base,
            self.length(),
            self.endianess.name,
        )

    def __len__(self):
        return self.length()

    @property
    def base(self) -> int:
        return self._base

    def _get_endianess(self) -> Endianess:
        return self._endianess

    def _set_endianess(self, value: Endianess) -> None:
        if not isinstance(value, Endianess):
            raise ValueError('\'%s\' is the wrong kind of byte order' % value.__class__.__name__)
        self._endianess = value

    endianess = property(_get_endianess, _set_endianess)

    def length(self) -> int:
        '''Number of readable bytes relative to the base.'''
        return len(self._buffer) - self._base

    def _validate(self, position: int, length: int) -> None:
        if position < 0:
            raise BoundsException('cannot read the buffer with a negative index [%d]' % position)

        if length < 0:
            raise BoundsException('length of requested bytes cannot be negative [%d]' % length)

        if position + length > self.length():
            raise BoundsException(
                'attempt to read beyond end of buffer: index [%d], requested length [%d], readable length [%d]' % (
                    position, length, self.length()))

        if position > sys.maxsize:
            raise BoundsException('position %d exceeds the maximum native index' % position)

    def peek_byte(self, position: int) -> int:
        self._validate(position, 1)

        return self._buffer[self._base + position]

    def peek_bytes(self, position: int, length: int) -> bytes:
        self._validate(position, length)

        start = self._base + position
        return bytes(self._buffer[start:start + length])

    def dump(self) -> str:
        '''Hex dump of the readable region, offsets are relative to the base.'''
        lines = []
        for row in range(0, self.length(), 16):
            chunk = self._buffer[self._base + row:self._base + row + 16]
            left = ' '.join('%02X' % _ for _ in chunk[:8])
            right = ' '.join('%02X' % _ for _ in chunk[8:])
            lines.append('%04X: %s' % (row, '%s - %s' % (left, right) if right else left))

        lines.append('readable length: %d' % self.length())

        return '\n'.join(lines)


class ByteReader(ByteCursor):
    '''Decodes integers and IEEE floats at an arbitrary index of the region.

    Each read honours the cursor's endianess unless an explicit one is passed.'''

    def _unpack(self, fmt: str, position: int, endianess=None):
        endianess = endianess if endianess is not None else self.endianess
        layout = '%s%s' % (struct_prefix(endianess), fmt)
        raw = self.peek_bytes(position, struct.calcsize(layout))

        return struct.unpack(layout, raw)[0]

    def read_u8(self, position, endianess=None) -> int:
        return self.peek_byte(position)

    def read_s8(self, position, endianess=None) -> int:
        return self._unpack('b', position, endianess)

    def read_u16(self, position, endianess=None) -> int:
        return self._unpack('H', position, endianess)

    def read_s16(self, position, endianess=None) -> int:
        return self._unpack('h', position, endianess)

    def read_u32(self, position, endianess=None) -> int:
        return self._unpack('I', position, endianess)

    def read_s32(self, position, endianess=None) -> int:
        return self._unpack('i', position, endianess)

    def read_u64(self, position, endianess=None) -> int:
        return self._unpack('Q', position, endianess)

    def read_s64(self, position, endianess=None) -> int:
        return self._unpack('q', position, endianess)

    def read_f32(self, position, endianess=None) -> float:
        return self._unpack('f', position, endianess)

    def read_f64(self, position, endianess=None) -> float:
        return self._unpack('d', position, endianess)


class SequentialReader(ByteReader):
    '''A ByteReader that keeps a current position, like a file object.

    The position is relative to the base; save() and restore() allow to jump
    somewhere and come back.'''

    def __init__(self, buffer, base=0, endianess=Endianess.BIG_ENDIAN):
        super().__init__(buffer, base=base, endianess=endianess)
        self._position = 0
        self.history = []

    def tell(self) -> int:
        return self._position

    def seek(self, position: int) -> None:
        if position < 0 or position > self.length():
            raise BoundsException('cannot seek at %d, readable length is %d' % (position, self.length()))

        self._position = position

    def skip(self, n: int) -> None:
        self.seek(self._position + n)

    def remaining(self) -> int:
        return self.length() - self._position

    def save(self):
        self.history.append(self._position)

    def restore(self):
        self._position = self.history.pop()

    @contextmanager
    def preserve(self):
        '''The position is restored on exit, whatever happens inside the block.'''
        self.save()
        try:
            yield self
        finally:
            self.restore()

    def _advance(self, size, value):
        self._position += size
        return value

    def read_bytes(self, n: int) -> bytes:
        return self._advance(n, self.peek_bytes(self._position, n))

    def read_byte(self) -> int:
        return self._advance(1, self.read_u8(self._position))

    def read_unsigned_short(self, endianess=None) -> int:
        return self._advance(2, self.read_u16(self._position, endianess))

    def read_short(self, endianess=None) -> int:
        return self._advance(2, self.read_s16(self._position, endianess))

    def read_unsigned_int(self, endianess=None) -> int:
        return self._advance(4, self.read_u32(self._position, endianess))

    def read_int(self, endianess=None) -> int:
        return self._advance(4, self.read_s32(self._position, endianess))

    def read_unsigned_long(self, endianess=None) -> int:
        return self._advance(8, self.read_u64(self._position, endianess))

    def read_long(self, endianess=None) -> int:
        return self._advance(8, self.read_s64(self._position, endianess))
