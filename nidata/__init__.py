"""nidata - decode NIfTI-1 volumes and GIFTI surfaces into numpy data

This module reads the binary NIfTI-1 format (.nii/.nii.gz) and the XML-based
GIFTI format (.gii/.gii.gz) into numpy arrays and small record types.

    import nidata as nd

    vol = nd.loadnifti('brain.nii.gz')   # VolumeImage (header + voxels)
    hdr = nd.readniiheader('brain.nii')  # VolumeHeader only

    surf = nd.loadgifti('lh.pial.gii')   # SurfaceMesh
    gii = nd.readgifti('lh.func.gii')    # GiftiImage, arrays not assembled

``loadnifti`` returns a flat array instead of a VolumeImage when the data has
a single non-singleton axis, and ``loadgifti`` returns the GiftiImage when the
file does not hold exactly one pointset and one triangle array.

All decoding errors derive from ``nidata.NIDataError`` (a ``ValueError``).
"""

from .errors import (
    NIDataError,
    MalformedHeader,
    UnrecognizedFormatCode,
    TruncatedPayload,
    UnrecognizedEncoding,
    MissingElement,
)
from .codemap import (
    niicodemap,
    giicodemap,
    code2type,
    type2code,
    typebits,
    colorchannels,
    colorpack,
    colorunpack,
    splitunits,
    joinunits,
)
from .zipcodec import base64zlibdecode, base64zlibencode, bytenormalize
from .nifti import (
    VolumeHeader,
    VolumeImage,
    niiformat,
    readniiheader,
    readniivoxels,
    readniidata,
    interpretnifti,
    loadnifti,
)
from .gifti import (
    CoordSystem,
    LabelEntry,
    GiftiDataArray,
    GiftiImage,
    SurfaceMesh,
    giidataarray,
    giilabeltable,
    readgifti,
    assemblesurface,
    loadgifti,
)

__version__ = "0.1.0"
__all__ = [
    "NIDataError",
    "MalformedHeader",
    "UnrecognizedFormatCode",
    "TruncatedPayload",
    "UnrecognizedEncoding",
    "MissingElement",
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
    "base64zlibdecode",
    "base64zlibencode",
    "bytenormalize",
    "VolumeHeader",
    "VolumeImage",
    "niiformat",
    "readniiheader",
    "readniivoxels",
    "readniidata",
    "interpretnifti",
    "loadnifti",
    "CoordSystem",
    "LabelEntry",
    "GiftiDataArray",
    "GiftiImage",
    "SurfaceMesh",
    "giidataarray",
    "giilabeltable",
    "readgifti",
    "assemblesurface",
    "loadgifti",
]
__license__ = """Apache license 2.0, Copyright (c) 2019-2026 Qianqian Fang"""
