from enum import Enum, auto


class Endianess(Enum):
    LITTLE_ENDIAN = auto()
    BIG_ENDIAN    = auto()
    NETWORK       = auto()
    NATIVE        = auto()


_STRUCT_PREFIX = {
    Endianess.LITTLE_ENDIAN: '<',
    Endianess.BIG_ENDIAN:    '>',
    Endianess.NETWORK:       '!',
    Endianess.NATIVE:        '=',
}


def struct_prefix(endianess: Endianess) -> str:
    '''Returns the character to prepend to a struct format for the given byte order.'''
    try:
        return _STRUCT_PREFIX[endianess]
    except KeyError:
        raise ValueError('\'%s\' is not a valid byte order' % endianess) from None
