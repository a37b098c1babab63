"""
A FieldType is the "fundamental" datatype of an IFD entry from the format point of view:
each one has an element width and a rule to decode a run of elements from raw bytes.

The type codes are the ones defined in the TIFF 6.0 specification, section 2.
"""
import logging
import struct
import sys
from enum import Enum
from fractions import Fraction
from typing import Tuple, Union

from .meta import Endianess, struct_prefix
from .streams import ByteReader
from .exceptions import BoundsException


logger = logging.getLogger(__name__)


class FieldKind(Enum):
    '''Numeric classification of the elements of a field'''
    UNSIGNED  = 'unsigned'
    SIGNED    = 'signed'
    FLOAT     = 'float'
    RATIONAL  = 'rational'
    TEXT      = 'text'
    UNDEFINED = 'undefined'
    ERROR     = 'error'


class Rational(object):
    '''A numerator/denominator pair, kept as it is read from the file.

    Equality is defined on the pair, so 1/2 and 2/4 are different values;
    use fraction() when the mathematical value is what matters.'''

    __slots__ = ('numerator', 'denominator', 'signed')

    def __init__(self, numerator: int, denominator: int, signed: bool = False):
        if not signed and (numerator < 0 or denominator < 0):
            raise ValueError('an unsigned rational cannot hold negative terms (%d/%d)' % (numerator, denominator))
        self.numerator = numerator
        self.denominator = denominator
        self.signed = signed

    def __repr__(self):
        return '<%s(%d/%d)>' % (self.__class__.__name__, self.numerator, self.denominator)

    def __str__(self):
        if self.denominator == 0:
            return 'Invalid rational number detected (%d/%d)' % (self.numerator, self.denominator)

        simplified = self.fraction()
        if simplified.denominator == 1:
            return str(simplified.numerator)

        return '%d/%d' % (simplified.numerator, simplified.denominator)

    def __eq__(self, other):
        if not isinstance(other, Rational):
            return NotImplemented

        return (self.numerator, self.denominator) == (other.numerator, other.denominator)

    def __hash__(self):
        return hash((self.numerator, self.denominator))

    def __iter__(self):
        return iter((self.numerator, self.denominator))

    def fraction(self) -> Fraction:
        if self.denominator == 0:
            raise ArithmeticError('denominator cannot be zero')

        return Fraction(self.numerator, self.denominator)

    def __float__(self):
        return float(self.fraction())

    def __int__(self):
        return int(self.fraction())


class Scalar(object):
    '''Result of decoding a single element.'''

    __slots__ = ('value',)

    is_sequence = False

    def __init__(self, value):
        self.value = value

    def __repr__(self):
        return '<%s(%r)>' % (self.__class__.__name__, self.value)

    def __eq__(self, other):
        if not isinstance(other, Scalar):
            return NotImplemented
        return self.value == other.value

    def __hash__(self):
        return hash(self.value)

    def __str__(self):
        return str(self.value)


class Sequence(object):
    '''Result of decoding more than one element: the values keep the file order.'''

    __slots__ = ('values',)

    is_sequence = True

    def __init__(self, values):
        self.values = tuple(values)

    def __repr__(self):
        return '<%s(%r)>' % (self.__class__.__name__, self.values)

    def __eq__(self, other):
        if not isinstance(other, Sequence):
            return NotImplemented
        return self.values == other.values

    def __hash__(self):
        return hash(self.values)

    def __len__(self):
        return len(self.values)

    def __getitem__(self, item):
        return self.values[item]

    def __str__(self):
        return ' '.join(str(_) for _ in self.values)


DecodedValue = Union[Scalar, Sequence]


class FieldType(Enum):
    """Catalogue of the TIFF field types.

    Each member knows its type code, the width of a single element, its struct
    format (None for text and uninterpreted bytes) and its numeric kind.
    """

    ERROR     = (0,  0, None, FieldKind.ERROR,     'Unknown type. Error')
    BYTE      = (1,  1, 'B',  FieldKind.UNSIGNED,  '8-bit unsigned integer')
    ASCII     = (2,  1, None, FieldKind.TEXT,      'null terminated ASCII string')
    SHORT     = (3,  2, 'H',  FieldKind.UNSIGNED,  '16-bit unsigned integer')
    LONG      = (4,  4, 'I',  FieldKind.UNSIGNED,  '32-bit unsigned integer')
    RATIONAL  = (5,  8, 'II', FieldKind.RATIONAL,  'pair of unsigned 32-bit integers')
    SBYTE     = (6,  1, 'b',  FieldKind.SIGNED,    '8-bit signed integer')
    UNDEFINED = (7,  1, None, FieldKind.UNDEFINED, '8-bit uninterpreted byte')
    SSHORT    = (8,  2, 'h',  FieldKind.SIGNED,    '16-bit signed integer')
    SLONG     = (9,  4, 'i',  FieldKind.SIGNED,    '32-bit signed integer')
    SRATIONAL = (10, 8, 'ii', FieldKind.RATIONAL,  'pair of signed 32-bit integers')
    FLOAT     = (11, 4, 'f',  FieldKind.FLOAT,     'single precision IEEE float')
    DOUBLE    = (12, 8, 'd',  FieldKind.FLOAT,     'double precision IEEE float')
    IFD       = (13, 4, 'I',  FieldKind.UNSIGNED,  'IFD pointer (TIFF Technical Note 1)')

    def __new__(cls, code, width, fmt, kind, description):
        obj = object.__new__(cls)
        obj._value_ = code
        obj.width = width
        obj.format = fmt
        obj.kind = kind
        obj.description = description
        return obj

    @classmethod
    def from_code(cls, code: int) -> 'FieldType':
        try:
            return cls(code)
        except ValueError:
            logger.debug('unknown field type code %d', code)
            return cls.ERROR

    @property
    def code(self) -> int:
        return self.value

    @property
    def int_convertible(self) -> bool:
        '''True when every value of this type fits a signed 32-bit integer without loss.'''
        return self in _INT_CONVERTIBLE

    @property
    def is_numeric(self) -> bool:
        return self.kind in (FieldKind.UNSIGNED, FieldKind.SIGNED, FieldKind.FLOAT, FieldKind.RATIONAL)

    @property
    def is_rational(self) -> bool:
        return self.kind == FieldKind.RATIONAL

    @property
    def is_text(self) -> bool:
        return self.kind == FieldKind.TEXT

    def byte_length(self, count: int) -> int:
        if count < 0:
            raise BoundsException('element count cannot be negative [%d]' % count)

        length = count * self.width
        if length > sys.maxsize:
            raise BoundsException('%d elements of %s exceed the addressable length' % (count, self.name))

        return length

    def _decode_element(self, reader: ByteReader, position: int, endianess: Endianess):
        layout = struct_prefix(endianess) + self.format
        values = struct.unpack(layout, reader.peek_bytes(position, self.width))

        if self.kind == FieldKind.RATIONAL:
            return Rational(*values, signed=self is FieldType.SRATIONAL)

        return values[0]

    def decode(self, raw: bytes, count: int, endianess: Endianess = Endianess.BIG_ENDIAN) -> DecodedValue:
        '''Decodes "count" elements from the start of "raw".

        Numeric types give a Scalar when count is one, a Sequence otherwise.
        Text and undefined bytes are always a single Scalar: the string up to
        the first NUL and the raw block respectively.'''
        if self.kind == FieldKind.ERROR:
            raise ValueError('cannot decode a field of unknown type')

        length = self.byte_length(count)
        reader = ByteReader(raw)

        if self.kind == FieldKind.TEXT:
            data = reader.peek_bytes(0, length)
            return Scalar(data.split(b'\x00', 1)[0].decode('utf-8', errors='replace'))

        if self.kind == FieldKind.UNDEFINED:
            return Scalar(reader.peek_bytes(0, length))

        # validate the whole run before decoding
        reader.peek_bytes(0, length)

        elements = [
            self._decode_element(reader, index * self.width, endianess)
            for index in range(count)
        ]

        if count == 1:
            return Scalar(elements[0])

        return Sequence(elements)


_INT_CONVERTIBLE: Tuple[FieldType, ...] = (
    FieldType.BYTE,
    FieldType.SBYTE,
    FieldType.SHORT,
    FieldType.SSHORT,
    FieldType.SLONG,
)
