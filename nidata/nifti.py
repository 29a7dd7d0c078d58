"""@package docstring
Decode NIfTI-1 (.nii/.nii.gz) headers and voxel data

Copyright (c) 2019-2026 Qianqian Fang <q.fang at neu.edu>
"""

__all__ = [
    "VolumeHeader",
    "VolumeImage",
    "niiformat",
    "readniiheader",
    "readniivoxels",
    "readniidata",
    "interpretnifti",
    "loadnifti",
]

##====================================================================================
## dependent libraries
##====================================================================================

import sys
import math
import struct
import warnings
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .codemap import (
    code2type,
    colorchannels,
    colorpack,
    splitunits,
    storagedtype,
    type2code,
    typebits,
)
from .errors import MalformedHeader, TruncatedPayload, UnrecognizedFormatCode
from .source import opensource

##====================================================================================
## global variables
##====================================================================================

NIFTI_HEADER_SIZE = 348
NIFTI_MIN_OFFSET = 352
NIFTI_MAGIC = ("ni1", "n+1")

_DIM_OFFSET = 40


def niiformat():
    """
    Return the NIfTI-1 header layout as a list of [dtype, count, field name],
    in file order; the byte sizes add up to 348.
    """
    return [
        ["int32", 1, "sizeof_hdr"],  # !< MUST be 348
        ["uint8", 10, "data_type"],  # !< ++UNUSED++
        ["uint8", 18, "db_name"],  # !< ++UNUSED++
        ["int32", 1, "extents"],  # !< ++UNUSED++
        ["int16", 1, "session_error"],  # !< ++UNUSED++
        ["int8", 1, "regular"],  # !< ++UNUSED++
        ["uint8", 1, "dim_info"],  # !< MRI slice ordering.
        ["int16", 8, "dim"],  # !< Data array dimensions.
        ["float32", 3, "intent_p"],  # !< intent parameters 1-3.
        ["int16", 1, "intent_code"],  # !< NIFTI_INTENT_* code.
        ["int16", 1, "datatype"],  # !< Defines data type!
        ["int16", 1, "bitpix"],  # !< Number bits/voxel.
        ["int16", 1, "slice_start"],  # !< First slice index.
        ["float32", 8, "pixdim"],  # !< Grid spacings.
        ["float32", 1, "vox_offset"],  # !< Offset into .nii file
        ["float32", 1, "scl_slope"],  # !< Data scaling: slope.
        ["float32", 1, "scl_inter"],  # !< Data scaling: offset.
        ["int16", 1, "slice_end"],  # !< Last slice index.
        ["uint8", 1, "slice_code"],  # !< Slice timing order.
        ["uint8", 1, "xyzt_units"],  # !< Units of pixdim[1..4]
        ["float32", 1, "cal_max"],  # !< Max display intensity
        ["float32", 1, "cal_min"],  # !< Min display intensity
        ["float32", 1, "slice_duration"],  # !< Time for 1 slice.
        ["float32", 1, "toffset"],  # !< Time axis shift.
        ["int32", 2, "glrange"],  # !< ++UNUSED++ glmax, glmin
        ["uint8", 80, "descrip"],  # !< any text you like.
        ["uint8", 24, "aux_file"],  # !< auxiliary filename.
        ["int16", 1, "qform_code"],  # !< NIFTI_XFORM_* code.
        ["int16", 1, "sform_code"],  # !< NIFTI_XFORM_* code.
        ["float32", 6, "quatern"],  # !< quatern_b/c/d, qoffset_x/y/z
        ["float32", 12, "srow"],  # !< 3x4 affine transform, row by row
        ["uint8", 16, "intent_name"],  # !< 'name' or meaning of data.
        ["uint8", 4, "magic"],  # !< MUST be "ni1\0" or "n+1\0".
    ]


##====================================================================================
## decoded records
##====================================================================================


@dataclass(frozen=True, eq=False)
class VolumeHeader:
    """A decoded NIfTI-1 header; ``byteorder`` is '<' or '>' as found on disk."""

    sizeof_hdr: int
    data_type: str
    db_name: str
    extents: int
    session_error: int
    regular: int
    dim_info: int
    dim: Tuple[int, ...]
    intent_p: Tuple[float, float, float]
    intent_code: int
    datatype: str
    bitpix: int
    slice_start: int
    pixdim: Tuple[float, ...]
    qfac: float
    vox_offset: int
    scl_slope: float
    scl_inter: float
    slice_end: int
    slice_code: int
    units: Tuple[Optional[str], Optional[str]]
    cal_max: float
    cal_min: float
    slice_duration: float
    toffset: float
    glrange: Tuple[int, int]
    descrip: str
    aux_file: str
    qform_code: int
    sform_code: int
    quatern: Tuple[float, float, float]
    qoffset: Tuple[float, float, float]
    srow: np.ndarray
    intent_name: str
    magic: str
    byteorder: str

    @property
    def datacode(self) -> int:
        return type2code(self.datatype)

    def sform(self) -> np.ndarray:
        """4x4 voxel-to-world affine from the stored srow_x/y/z rows."""
        out = np.eye(4)
        out[:3, :] = self.srow
        return out

    def qform(self) -> np.ndarray:
        """4x4 voxel-to-world affine derived from the quaternion parameters."""
        b, c, d = self.quatern
        a = math.sqrt(max(0.0, 1.0 - (b * b + c * c + d * d)))
        rot = np.array(
            [
                [a * a + b * b - c * c - d * d, 2 * (b * c - a * d), 2 * (b * d + a * c)],
                [2 * (b * c + a * d), a * a + c * c - b * b - d * d, 2 * (c * d - a * b)],
                [2 * (b * d - a * c), 2 * (c * d + a * b), a * a + d * d - c * c - b * b],
            ]
        )
        vox = np.ones(3)
        spacing = np.abs(self.pixdim[:3])
        vox[: len(spacing)] = spacing
        if self.qfac < 0:
            vox[2] = -vox[2]
        out = np.eye(4)
        out[:3, :3] = rot * vox
        out[:3, 3] = self.qoffset
        return out


@dataclass(frozen=True, eq=False)
class VolumeImage:
    """A NIfTI header paired with its reshaped voxel array."""

    header: VolumeHeader
    voxels: np.ndarray

    @property
    def shape(self):
        return self.voxels.shape

    @property
    def affine(self) -> np.ndarray:
        """sform when sform_code is set, otherwise the quaternion-derived qform."""
        if self.header.sform_code > 0:
            return self.header.sform()
        return self.header.qform()


##====================================================================================
## header decoding
##====================================================================================


def _text(value, hdr):
    return bytes(value).split(b"\x00", 1)[0].decode("latin-1").rstrip()


def _check_sizeof_hdr(value, hdr):
    if value[0] != NIFTI_HEADER_SIZE:
        raise MalformedHeader("sizeof_hdr", int(value[0]), "must be 348")
    return int(value[0])


def _check_dim(value, hdr):
    ndim = int(value[0])
    if not 0 <= ndim <= 7:
        raise MalformedHeader("dim", ndim, "dimension count must be within 0-7")
    dims = tuple(int(v) for v in value[1 : ndim + 1])
    if any(v < 0 for v in dims):
        raise MalformedHeader("dim", dims, "negative axis extent")
    return dims


def _check_datatype(value, hdr):
    try:
        return code2type(value[0])
    except UnrecognizedFormatCode as err:
        raise MalformedHeader("datatype", int(value[0]), str(err)) from err


def _check_bitpix(value, hdr):
    bitpix = int(value[0])
    expected = typebits(hdr["datatype"])
    if bitpix != expected:
        warnings.warn(
            f"bitpix is {bitpix} but datatype {hdr['datatype']} has {expected} bits"
        )
    return bitpix


def _check_pixdim(value, hdr):
    hdr["qfac"] = float(value[0])
    return tuple(float(v) for v in value[1 : len(hdr["dim"]) + 1])


def _check_vox_offset(value, hdr):
    if not np.isfinite(value[0]):
        raise MalformedHeader("vox_offset", float(value[0]), "not a finite number")
    offset = int(value[0])
    if offset < NIFTI_MIN_OFFSET:
        warnings.warn(f"vox_offset {value[0]} is below {NIFTI_MIN_OFFSET}, using 352")
        offset = NIFTI_MIN_OFFSET
    return offset


def _check_quatern(value, hdr):
    hdr["qoffset"] = tuple(float(v) for v in value[3:])
    return tuple(float(v) for v in value[:3])


def _check_magic(value, hdr):
    magic = _text(value, hdr)
    if magic not in NIFTI_MAGIC:
        raise MalformedHeader("magic", magic, "must be 'ni1' or 'n+1'")
    return magic


_FIELD_CHECKS = {
    "sizeof_hdr": _check_sizeof_hdr,
    "data_type": _text,
    "db_name": _text,
    "dim": _check_dim,
    "intent_p": lambda v, hdr: tuple(float(x) for x in v),
    "datatype": _check_datatype,
    "bitpix": _check_bitpix,
    "pixdim": _check_pixdim,
    "vox_offset": _check_vox_offset,
    "xyzt_units": lambda v, hdr: splitunits(v[0]),
    "glrange": lambda v, hdr: (int(v[1]), int(v[0])),
    "descrip": _text,
    "aux_file": _text,
    "quatern": _check_quatern,
    "srow": lambda v, hdr: v.astype(np.float64).reshape(3, 4),
    "intent_name": _text,
    "magic": _check_magic,
}

_FIELD_RENAMES = {"xyzt_units": "units"}


def _detectbyteorder(stream, start):
    """
    Peek at dim[0]; a count outside 0-7 in the platform byte order means the
    file was written in the opposite order.
    """
    stream.seek(start + _DIM_OFFSET)
    buf = stream.read(2)
    if len(buf) < 2:
        raise MalformedHeader("dim", None, "file ends inside the header")
    native = "<" if sys.byteorder == "little" else ">"
    ndim = struct.unpack(native + "h", buf)[0]
    if 0 <= ndim <= 7:
        return native
    return ">" if native == "<" else "<"


def _decodeheader(stream, start):
    byteorder = _detectbyteorder(stream, start)
    stream.seek(start)

    hdr = {}
    for dtype, count, name in niiformat():
        dt = np.dtype(dtype).newbyteorder(byteorder)
        buf = stream.read(dt.itemsize * count)
        if len(buf) < dt.itemsize * count:
            raise MalformedHeader(name, None, "file ends inside the header")
        value = np.frombuffer(buf, dtype=dt, count=count)
        check = _FIELD_CHECKS.get(name)
        if check is not None:
            value = check(value, hdr)
        elif count == 1:
            value = value[0].item()
        hdr[_FIELD_RENAMES.get(name, name)] = value

    hdr["byteorder"] = byteorder
    return VolumeHeader(**hdr)


def readniiheader(source):
    """
    Decode the 348-byte NIfTI-1 header of ``source``.

    Parameters
    ----------
    source : str, os.PathLike, bytes or binary file object
        A .nii/.nii.gz file name, an in-memory file image, or a seekable stream
        positioned at the start of the header.

    Returns
    -------
    header : VolumeHeader
        header.byteorder holds the byte order detected for this file

    Raises
    ------
    MalformedHeader
        naming the first field that failed validation
    """
    with opensource(source) as stream:
        return _decodeheader(stream, stream.tell())


##====================================================================================
## voxel decoding
##====================================================================================


def _reshapevoxels(flat, dim):
    """
    Nest the flat voxel list into axes from the slowest-varying extent inward,
    dropping a singleton 4th (time) axis, then reverse the two innermost axes.
    """
    dims = list(dim)
    if len(dims) >= 4 and dims[3] == 1:
        del dims[3]
    vol = flat.reshape(dims[::-1])
    if vol.ndim == 0:
        return vol
    vol = np.flip(vol, axis=tuple(range(max(vol.ndim - 2, 0), vol.ndim)))
    return np.ascontiguousarray(vol)


def _decodevoxels(stream, start, header):
    count = math.prod(header.dim)
    typename = header.datatype
    stream.seek(start + header.vox_offset)

    if typename == "binary":
        nbytes = (count + 7) // 8
        buf = stream.read(nbytes)
        if len(buf) < nbytes:
            raise TruncatedPayload(count, len(buf) * 8)
        flat = np.unpackbits(np.frombuffer(buf, dtype=np.uint8))[:count].astype(bool)
        return _reshapevoxels(flat, header.dim)

    nchannel = colorchannels(typename)
    dtype = storagedtype(typename, header.byteorder)
    elembytes = dtype.itemsize * max(nchannel, 1)
    buf = stream.read(count * elembytes)
    if len(buf) < count * elembytes:
        raise TruncatedPayload(count, len(buf) // elembytes)

    flat = np.frombuffer(buf, dtype=dtype)
    if nchannel:
        flat = colorpack(flat.reshape(count, nchannel))
    else:
        flat = flat.astype(dtype.newbyteorder("="))
    return _reshapevoxels(flat, header.dim)


def readniivoxels(source, header=None):
    """
    Read the voxel array of ``source``.

    If ``header`` is None the header is decoded first; passing a header from
    readniiheader() skips that step. RGB24/RGBA32 voxels are returned as packed
    uint32 values, see codemap.colorunpack().

    Raises
    ------
    TruncatedPayload
        if the file holds fewer voxels than the header declares
    """
    with opensource(source) as stream:
        start = stream.tell()
        if header is None:
            header = _decodeheader(stream, start)
        return _decodevoxels(stream, start, header)


def readniidata(source):
    """Return the (header, voxels) pair of a NIfTI-1 file."""
    with opensource(source) as stream:
        start = stream.tell()
        header = _decodeheader(stream, start)
        return header, _decodevoxels(stream, start, header)


##====================================================================================
## interpretation
##====================================================================================


def interpretnifti(header, voxels):
    """
    A volume with only one non-singleton axis is returned as a flat array (a
    single time series or a line of voxels); anything else becomes a VolumeImage.
    """
    shape = voxels.shape
    if sum(1 for s in shape if s == 1) == len(shape) - 1:
        return voxels.ravel()
    return VolumeImage(header, voxels)


def loadnifti(source):
    """
    Load a NIfTI-1 file.

    Parameters
    ----------
    source : str, os.PathLike, bytes or binary file object
        .nii or .nii.gz file, an in-memory image of one, or a seekable stream

    Returns
    -------
    VolumeImage, or a 1-D numpy array for degenerate single-axis data
    """
    return interpretnifti(*readniidata(source))
