class MetastructException(Exception):
    '''Base class to extend in order to throw exception in metastruct.

    It takes an optional argument that represents the chain of the structures
    (box types, directory names) that caused the exception.
    '''

    def __init__(self, message='', chain=None):
        self.message = message
        self.chain = chain if chain is not None else []
        super().__init__(message)

    def __str__(self):
        if not self.chain:
            return str(self.message)

        return '%s [at %s]' % (self.message, '/'.join(self.chain))


class BoundsException(MetastructException, IndexError):
    '''A read would fall outside the validated region.'''
    pass


class MissingTagException(MetastructException, KeyError):
    '''A tag requested through a typed accessor is not in the directory.'''
    pass


class TypeConversionException(MetastructException, TypeError):
    pass


class MalformedValueException(MetastructException, ValueError):
    pass


class UnpackException(MetastructException):
    '''The structure being walked is not well formed.'''
    pass


class BoxUnpackException(UnpackException):
    pass


class UnsupportedFormatException(UnpackException):
    pass


class FrozenDirectoryException(MetastructException):
    '''This is raised when a directory is modified after its parse pass ended.'''
    pass
