'''errors.py: Contains the exception classes raised by the FIT codec.'''


class FitError(Exception):
    '''Base class for every error raised by the codec.'''


class UnknownTypeError(FitError, KeyError):
    '''A field type, enum table, message or field name is not in the registry.

    This is a schema error: message layouts are fixed ahead of time, so it
    points at a programming or configuration defect rather than bad data.
    '''

    def __str__(self):
        # KeyError quotes its argument; keep the plain message instead
        return str(self.args[0]) if self.args else ''


class FramingError(FitError):
    '''The record stream is malformed, e.g. a data record for an unbound slot.'''


class HeaderError(FramingError):
    '''The file header is malformed.'''


class IntegrityError(FitError):
    '''The file is corrupt and must not be trusted.'''


class ChecksumMismatchError(IntegrityError):
    '''A header or file CRC does not match the bytes it covers.'''

    def __init__(self, message: str, expected: int = None, actual: int = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class TruncatedFileError(IntegrityError):
    '''The buffer holds fewer bytes than the header declares.'''


class SizeMismatchError(IntegrityError):
    '''The buffer holds more bytes than the header declares.'''
