"""@package docstring
Error types raised while decoding NIfTI-1 and GIFTI files

Copyright (c) 2019-2026 Qianqian Fang <q.fang at neu.edu>
"""

__all__ = [
    "NIDataError",
    "MalformedHeader",
    "UnrecognizedFormatCode",
    "TruncatedPayload",
    "UnrecognizedEncoding",
    "MissingElement",
]


class NIDataError(ValueError):
    """Base class of all decoding errors raised by nidata."""

    pass


class MalformedHeader(NIDataError):
    """A fixed NIfTI header field failed validation.

    Attributes:
        field: name of the first header field that failed
        value: the offending raw value, if available
    """

    def __init__(self, field, value=None, reason=""):
        self.field = field
        self.value = value
        msg = f"malformed NIfTI header field '{field}'"
        if value is not None:
            msg += f" (value={value!r})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class UnrecognizedFormatCode(NIDataError):
    """A datatype or unit code has no entry in the code tables."""

    def __init__(self, value, table="datatype"):
        self.value = value
        self.table = table
        super().__init__(f"unrecognized {table} code: {value!r}")


class TruncatedPayload(NIDataError):
    """Fewer bytes or elements were found than the header declares."""

    def __init__(self, expected, found, unit="elements", msg=None):
        self.expected = expected
        self.found = found
        super().__init__(msg or f"expected {expected} {unit}, found {found}")


class UnrecognizedEncoding(NIDataError):
    """A GIFTI DataArray attribute holds a value this decoder cannot handle."""

    def __init__(self, attribute, value):
        self.attribute = attribute
        self.value = value
        super().__init__(f"unrecognized {attribute} in DataArray: {value!r}")


class MissingElement(NIDataError):
    """A required XML child element is absent."""

    def __init__(self, tag):
        self.tag = tag
        super().__init__(f"no <{tag}> element found")
