"""@package docstring
Code tables shared by the NIfTI and GIFTI decoders

Maps the integer datatype codes stored in a NIfTI-1 header and the
NIFTI_TYPE_* strings used in GIFTI DataArray attributes to element type
names, decodes the packed xyzt_units byte, and packs/unpacks RGB voxels.

Copyright (c) 2019-2026 Qianqian Fang <q.fang at neu.edu>
"""

__all__ = [
    "niicodemap",
    "giicodemap",
    "code2type",
    "type2code",
    "typebits",
    "colorchannels",
    "colorpack",
    "colorunpack",
    "splitunits",
    "joinunits",
    "storagedtype",
]

##====================================================================================
## dependent libraries
##====================================================================================

import numpy as np

from .errors import UnrecognizedFormatCode, NIDataError

##====================================================================================
## global variables
##====================================================================================

# code: [type name, bytes per element, numpy storage type, color channels]
_NIFTI_DATATYPES = {
    1: ["binary", 0, None, 0],  # binary (1 bit/voxel)
    2: ["uint8", 1, "u1", 0],  # unsigned char (8 bits/voxel)
    4: ["int16", 2, "i2", 0],  # signed short (16 bits/voxel)
    8: ["int32", 4, "i4", 0],  # signed int (32 bits/voxel)
    16: ["float32", 4, "f4", 0],  # float (32 bits/voxel)
    32: ["complex64", 8, "c8", 0],  # complex (64 bits/voxel)
    64: ["float64", 8, "f8", 0],  # double (64 bits/voxel)
    128: ["rgb24", 3, "u1", 3],  # RGB triple (24 bits/voxel)
    256: ["int8", 1, "i1", 0],  # signed char (8 bits)
    512: ["uint16", 2, "u2", 0],  # unsigned short (16 bits)
    768: ["uint32", 4, "u4", 0],  # unsigned int (32 bits)
    1024: ["int64", 8, "i8", 0],  # long long (64 bits)
    1280: ["uint64", 8, "u8", 0],  # unsigned long long (64 bits)
    1536: ["float128", 16, "g", 0],  # long double (128 bits)
    1792: ["complex128", 16, "c16", 0],  # double pair (128 bits)
    2048: ["complex256", 32, "G", 0],  # long double pair (256 bits)
    2304: ["rgba32", 4, "u1", 4],  # 4 byte RGBA (32 bits/voxel)
}
_NIFTI_TYPENAMES = {v[0]: k for k, v in _NIFTI_DATATYPES.items()}

_GIFTI_DATATYPES = {
    "NIFTI_TYPE_UINT8": "uint8",
    "NIFTI_TYPE_INT32": "int32",
    "NIFTI_TYPE_FLOAT32": "float32",
}

_SPACE_UNITS = {1: "m", 2: "mm", 3: "um"}
_TIME_UNITS = {8: "s", 16: "ms", 24: "us", 32: "hz", 40: "ppm", 48: "rad"}

_COLOR_PLACES = {
    3: np.array([256**2, 256, 1], dtype=np.uint32),
    4: np.array([256**3, 256**2, 256, 1], dtype=np.uint32),
}

_CODE_TABLES = {
    "intent_code": {
        0: "",
        2: "corr",
        3: "ttest",
        4: "ftest",
        5: "zscore",
        6: "chi2",
        7: "beta",
        8: "binomial",
        9: "gamma",
        10: "poisson",
        11: "normal",
        12: "ncftest",
        13: "ncchi2",
        14: "logistic",
        15: "laplace",
        16: "uniform",
        17: "ncttest",
        18: "weibull",
        19: "chi",
        20: "invgauss",
        21: "extval",
        22: "pvalue",
        23: "logpvalue",
        24: "log10pvalue",
        1001: "estimate",
        1002: "label",
        1003: "neuronames",
        1004: "matrix",
        1005: "symmatrix",
        1006: "dispvec",
        1007: "vector",
        1008: "point",
        1009: "triangle",
        1010: "quaternion",
        1011: "unitless",
        2001: "tseries",
        2002: "elem",
        2003: "rgb",
        2004: "rgba",
        2005: "shape",
    },
    "slice_code": {
        0: "",
        1: "seq+",
        2: "seq-",
        3: "alt+",
        4: "alt-",
        5: "alt2+",
        6: "alt2-",
    },
    "xform_code": {
        0: "",
        1: "scanner_anat",
        2: "aligned_anat",
        3: "talairach",
        4: "mni_152",
        5: "template_other",
    },
    "datatype": {k: v[0] for k, v in _NIFTI_DATATYPES.items()},
}
_CODE_TABLES["qform_code"] = _CODE_TABLES["xform_code"]
_CODE_TABLES["sform_code"] = _CODE_TABLES["xform_code"]

##====================================================================================
## NIfTI datatype catalog
##====================================================================================


def code2type(code):
    """Return the element type name of a NIfTI datatype code, e.g. 16 -> 'float32'."""
    try:
        return _NIFTI_DATATYPES[int(code)][0]
    except (KeyError, TypeError, ValueError):
        raise UnrecognizedFormatCode(code, "datatype") from None


def type2code(typename):
    """Return the NIfTI datatype code of an element type name, e.g. 'rgb24' -> 128."""
    if typename not in _NIFTI_TYPENAMES:
        raise UnrecognizedFormatCode(typename, "datatype")
    return _NIFTI_TYPENAMES[typename]


def typebits(typename):
    """Bits occupied by one element, e.g. 'rgb24' -> 24, 'binary' -> 1."""
    nbytes = _NIFTI_DATATYPES[type2code(typename)][1]
    return nbytes * 8 if nbytes else 1


def colorchannels(typename):
    """Number of packed color channels: 3 for rgb24, 4 for rgba32, 0 otherwise."""
    return _NIFTI_DATATYPES[type2code(typename)][3]


def storagedtype(typename, endian="<"):
    """
    Return the numpy dtype used to read one on-disk element of ``typename``.

    Color types are read as ``uint8`` channel bytes; ``binary`` has no byte
    aligned storage type and returns None.
    """
    _, nbytes, npcode, _ = _NIFTI_DATATYPES[type2code(typename)]
    if npcode is None:
        return None
    dtype = np.dtype(npcode).newbyteorder(endian)
    if colorchannels(typename) == 0 and dtype.itemsize != nbytes:
        raise NIDataError(
            f"datatype {typename} needs {nbytes}-byte elements, "
            f"this platform provides {dtype.itemsize}"
        )
    return dtype


def colorpack(channels):
    """
    Pack a trailing RGB (3) or RGBA (4) channel axis into one integer per element
    using big-endian place values, R*256^2 + G*256 + B.
    """
    channels = np.asarray(channels)
    places = _COLOR_PLACES.get(channels.shape[-1])
    if places is None:
        raise UnrecognizedFormatCode(channels.shape[-1], "color channel count")
    return channels.astype(np.uint32) @ places


def colorunpack(values, nchannel=3):
    """Inverse of colorpack, returns a uint8 array with a new trailing channel axis."""
    places = _COLOR_PLACES.get(nchannel)
    if places is None:
        raise UnrecognizedFormatCode(nchannel, "color channel count")
    values = np.asarray(values, dtype=np.uint32)
    return ((values[..., np.newaxis] // places) % 256).astype(np.uint8)


##====================================================================================
## xyzt_units
##====================================================================================


def splitunits(code):
    """
    Split the xyzt_units byte into a (space, time) unit pair.

    Bits 0-2 hold the spatial unit, bits 3-7 the temporal/spectral unit;
    unknown values decode to None.
    """
    code = int(code) & 0xFF
    return _SPACE_UNITS.get(code & 7), _TIME_UNITS.get(code & ~7)


def joinunits(space, time):
    """Pack a (space, time) unit pair back into the xyzt_units byte."""
    code = 0
    for unit, table in ((space, _SPACE_UNITS), (time, _TIME_UNITS)):
        if unit is None:
            continue
        rev = {v: k for k, v in table.items()}
        if unit not in rev:
            raise UnrecognizedFormatCode(unit, "unit")
        code |= rev[unit]
    return code


##====================================================================================
## generic lookups
##====================================================================================


def niicodemap(name, value):
    """
    Convert between NIfTI numeric codes and human-readable header values.

    Parameters
    ----------
    name : str
        'datatype', 'intent_code', 'slice_code', 'qform_code', 'sform_code'
        or 'xform_code'
    value : str or int
        A code or a name; the value in the opposite domain is returned.
    """
    table = _CODE_TABLES.get(name.lower())
    if table is None:
        raise ValueError(f"Unsupported field name: {name}")

    if isinstance(value, (np.ndarray, np.generic)):
        value = value.item() if value.size == 1 else value.flat[0]

    if isinstance(value, (int, float, np.integer)):
        if int(value) not in table:
            raise UnrecognizedFormatCode(value, name)
        return table[int(value)]

    rev = {v: k for k, v in table.items()}
    if value not in rev:
        raise UnrecognizedFormatCode(value, name)
    return rev[value]


def giicodemap(value):
    """Convert between a GIFTI NIFTI_TYPE_* string and an element type name."""
    if value in _GIFTI_DATATYPES:
        return _GIFTI_DATATYPES[value]
    rev = {v: k for k, v in _GIFTI_DATATYPES.items()}
    if value in rev:
        return rev[value]
    raise UnrecognizedFormatCode(value, "GIFTI datatype")
