from enum import Flag


class Compliant(Flag):
    '''It indicates how strictly the data must reflect the format while walking it.

    With NONE malformed records are logged and skipped.'''
    NONE       = 0
    FIELD_TYPE = 1 << 0
    OFFSET     = 1 << 1
    ALL        = FIELD_TYPE | OFFSET
