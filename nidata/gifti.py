"""@package docstring
Decode GIFTI (.gii/.gii.gz) surface files into arrays and surface meshes

Copyright (c) 2019-2026 Qianqian Fang <q.fang at neu.edu>
"""

__all__ = [
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

import os
import math
import base64
import binascii
import warnings
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
from numpy.lib import recfunctions

from .codemap import giicodemap
from .errors import (
    NIDataError,
    MissingElement,
    TruncatedPayload,
    UnrecognizedEncoding,
    UnrecognizedFormatCode,
)
from .source import opensource, sourcedir
from .zipcodec import base64zlibdecode

##====================================================================================
## intent vocabulary
##====================================================================================


def _identity(data):
    return data


def _oneindexed(data):
    return data + 1


def _rgbtuples(data):
    """Turn the trailing RGB/RGBA axis into one (r, g, b[, a]) record per element."""
    nchannel = data.shape[-1] if data.ndim else 0
    names = {3: ["r", "g", "b"], 4: ["r", "g", "b", "a"]}.get(nchannel)
    if names is None:
        raise UnrecognizedEncoding("color vector length", nchannel)
    return recfunctions.unstructured_to_structured(np.ascontiguousarray(data), names=names)


_INTENTS = {
    "NIFTI_INTENT_GENMATRIX": ("Tensor", _identity),
    "NIFTI_INTENT_LABEL": ("Labels", _identity),
    "NIFTI_INTENT_NODE_INDEX": ("Mask", _oneindexed),
    "NIFTI_INTENT_POINTSET": ("Points", _identity),
    "NIFTI_INTENT_RGB_VECTOR": ("Overlay", _rgbtuples),
    "NIFTI_INTENT_RGBA_VECTOR": ("Overlay", _rgbtuples),
    "NIFTI_INTENT_SHAPE": ("Shape", _identity),
    "NIFTI_INTENT_TIME_SERIES": ("TimeSeries", _identity),
    "NIFTI_INTENT_TRIANGLE": ("Faces", _oneindexed),
    "NIFTI_INTENT_VECTOR": ("Vectors", _identity),
}
_OTHER_INTENT = ("Other", _identity)

_ENDIAN = {"LittleEndian": "<", "BigEndian": ">"}

_DEFAULT_RGBA = (0.667, 0.667, 0.667, 1.0)

##====================================================================================
## decoded records
##====================================================================================


@dataclass(frozen=True, eq=False)
class CoordSystem:
    dataspace: Optional[str]
    transformedspace: Optional[str]
    matrix: Optional[np.ndarray]


@dataclass(frozen=True)
class LabelEntry:
    key: int
    name: str
    rgba: Tuple[float, float, float, float]


@dataclass(frozen=True, eq=False)
class GiftiDataArray:
    """One decoded <DataArray>; ``data`` is reshaped and intent-transformed."""

    intent: str
    category: str
    datatype: str
    dims: Tuple[int, ...]
    indexorder: str
    encoding: str
    endian: str
    data: np.ndarray
    coordsystems: Tuple[CoordSystem, ...] = ()
    metadata: Dict[str, str] = field(default_factory=dict)
    attributes: Dict[str, str] = field(default_factory=dict)

    @property
    def coordsystem(self) -> Optional[CoordSystem]:
        return self.coordsystems[0] if self.coordsystems else None

    @property
    def name(self) -> Optional[str]:
        return self.metadata.get("Name")


@dataclass(frozen=True, eq=False)
class GiftiImage:
    """
    All DataArrays of a GIFTI file, in file order, plus file-level metadata.

    ``labeltable`` is None when the file has no <LabelTable>, and an empty
    dict when it has an empty one. ``errors`` lists (index, error) pairs for
    arrays skipped by readgifti(strict=False).
    """

    version: str
    darrays: Tuple[GiftiDataArray, ...]
    labeltable: Optional[Dict[int, LabelEntry]] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    attributes: Dict[str, str] = field(default_factory=dict)
    errors: Tuple[Tuple[int, NIDataError], ...] = ()

    @property
    def arrays(self) -> Dict[str, List[GiftiDataArray]]:
        """DataArrays grouped by intent category."""
        groups = {}
        for da in self.darrays:
            groups.setdefault(da.category, []).append(da)
        return groups

    def byintent(self, category) -> List[GiftiDataArray]:
        return [da for da in self.darrays if da.category == category]


@dataclass(frozen=True, eq=False)
class SurfaceMesh:
    """
    A triangulated surface with per-vertex and per-face attributes.

    ``faces`` holds 1-based vertex indices; use face() for 0-based ones.
    """

    points: np.ndarray
    faces: np.ndarray
    vertexprops: Dict[str, np.ndarray] = field(default_factory=dict)
    faceprops: Dict[str, np.ndarray] = field(default_factory=dict)
    labeltable: Optional[Dict[int, LabelEntry]] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    source: Optional[GiftiImage] = None

    @property
    def npoint(self) -> int:
        return self.points.shape[0]

    @property
    def nface(self) -> int:
        return self.faces.shape[0]

    def face(self, zero_based: bool = True) -> np.ndarray:
        """Triangle faces (default: 0-based indexing)."""
        return self.faces - 1 if zero_based else self.faces

    def __repr__(self) -> str:
        info = f"node={self.npoint}, face={self.nface}"
        props = list(self.vertexprops) + list(self.faceprops)
        if props:
            info += f", properties={props}"
        return f"SurfaceMesh({info})"


##====================================================================================
## element parsers
##====================================================================================


def _parse_metadata(elem: ET.Element) -> Dict[str, str]:
    """Parse MetaData element."""
    if elem is None:
        return {}
    result = {}
    for md in elem.findall("MD"):
        name_el, val_el = md.find("Name"), md.find("Value")
        if name_el is not None and name_el.text:
            result[name_el.text.strip()] = (
                (val_el.text or "").strip() if val_el is not None else ""
            )
    return result


def _parse_coord_system(elem: ET.Element) -> CoordSystem:
    """Parse CoordinateSystemTransformMatrix element."""
    spaces = []
    for tag in ("DataSpace", "TransformedSpace"):
        el = elem.find(tag)
        spaces.append(el.text.strip() if el is not None and el.text else None)

    matrix = None
    mat_el = elem.find("MatrixData")
    if mat_el is not None and mat_el.text and mat_el.text.strip():
        try:
            vals = np.array(mat_el.text.split(), dtype=np.float64)
        except ValueError as err:
            raise UnrecognizedEncoding("MatrixData", mat_el.text.strip()) from err
        if vals.size != 16:
            raise UnrecognizedEncoding("MatrixData", f"{vals.size} values")
        matrix = vals.reshape(4, 4)
    return CoordSystem(spaces[0], spaces[1], matrix)


def giilabeltable(elem: ET.Element) -> Optional[Dict[int, LabelEntry]]:
    """
    Parse a <LabelTable> into a {key: LabelEntry} dict ordered by key.

    Returns None if ``elem`` is None, so a missing table is distinguishable
    from an empty one.
    """
    if elem is None:
        return None
    entries = []
    for label in elem.findall("Label"):
        key = label.get("Key") or label.get("Index")
        if key is None:
            continue
        try:
            key = int(key)
            rgba = tuple(
                float(label.get(c, d))
                for c, d in zip(("Red", "Green", "Blue", "Alpha"), _DEFAULT_RGBA)
            )
        except ValueError as err:
            raise UnrecognizedEncoding("Label", dict(label.attrib)) from err
        entries.append(LabelEntry(key, (label.text or "???").strip(), rgba))
    return {e.key: e for e in sorted(entries, key=lambda e: e.key)}


##====================================================================================
## DataArray decoding
##====================================================================================


def _dims(attribs):
    try:
        ndim = int(attribs["Dimensionality"])
    except (KeyError, ValueError):
        raise UnrecognizedEncoding(
            "Dimensionality", attribs.get("Dimensionality")
        ) from None
    dims = []
    for i in range(ndim):
        try:
            dims.append(int(attribs[f"Dim{i}"]))
        except (KeyError, ValueError):
            raise UnrecognizedEncoding(f"Dim{i}", attribs.get(f"Dim{i}")) from None
    return tuple(dims)


def _indexorder(name):
    """Return a function (flat, dims) -> array for an ArrayIndexingOrder value."""
    if name == "RowMajorOrder":
        return lambda flat, dims: flat.reshape(dims)
    if name == "ColumnMajorOrder":
        return lambda flat, dims: flat.reshape(dims[::-1]).transpose()
    raise UnrecognizedEncoding("ArrayIndexingOrder", name)


def _readexternal(attribs, dtype, count, basedir):
    filename = attribs.get("ExternalFileName")
    if not filename:
        raise UnrecognizedEncoding("ExternalFileName", filename)
    if basedir and not os.path.isabs(filename):
        filename = os.path.join(basedir, filename)
    try:
        with open(filename, "rb") as fid:
            fid.seek(int(attribs.get("ExternalFileOffset", 0) or 0))
            buf = fid.read(count * dtype.itemsize)
    except (OSError, ValueError) as err:
        raise UnrecognizedEncoding("ExternalFileName", filename) from err
    if len(buf) < count * dtype.itemsize:
        raise TruncatedPayload(count, len(buf) // dtype.itemsize)
    return np.frombuffer(buf, dtype=dtype)


def _decodepayload(text, encoding, dtype, attribs, count, basedir, chunksize):
    if encoding == "ASCII":
        try:
            parsed = np.array(text.split(), dtype=np.float64)
        except ValueError as err:
            raise UnrecognizedEncoding("ASCII payload", str(err)) from err
        if dtype.kind in "iu" and parsed.size:
            info = np.iinfo(dtype)
            if not (
                np.all(parsed == np.floor(parsed))
                and parsed.min() >= info.min
                and parsed.max() <= info.max
            ):
                raise UnrecognizedEncoding(
                    "ASCII payload", f"values not representable as {dtype.name}"
                )
        return parsed.astype(dtype)
    if encoding == "Base64Binary":
        try:
            raw = base64.b64decode(text)
        except (binascii.Error, ValueError) as err:
            raise UnrecognizedEncoding("base64 payload", str(err)) from err
    elif encoding == "GZipBase64Binary":
        raw = base64zlibdecode(text, chunksize=chunksize)
    elif encoding == "ExternalFileBinary":
        return _readexternal(attribs, dtype, count, basedir)
    else:
        raise UnrecognizedEncoding("Encoding", encoding)
    if len(raw) % dtype.itemsize:
        raise TruncatedPayload(
            count, len(raw) // dtype.itemsize, msg=f"payload of {len(raw)} bytes "
            f"is not a whole number of {dtype.itemsize}-byte elements"
        )
    return np.frombuffer(raw, dtype=dtype)


def giidataarray(elem: ET.Element, basedir=None, chunksize=1024) -> GiftiDataArray:
    """
    Decode one <DataArray> element.

    Parameters
    ----------
    elem : xml.etree.ElementTree.Element
        the DataArray element
    basedir : str, optional
        directory used to resolve relative ExternalFileName attributes
    chunksize : int
        inflate chunk size for GZipBase64Binary payloads

    Raises
    ------
    UnrecognizedEncoding, MissingElement, TruncatedPayload
    """
    attribs = dict(elem.attrib)

    indexorder = attribs.get("ArrayIndexingOrder", "RowMajorOrder")
    reorder = _indexorder(indexorder)
    try:
        datatype = giicodemap(attribs.get("DataType"))
    except UnrecognizedFormatCode:
        raise UnrecognizedEncoding("DataType", attribs.get("DataType")) from None
    dims = _dims(attribs)
    encoding = attribs.get("Encoding", "ASCII")
    endian = _ENDIAN.get(attribs.get("Endian", "LittleEndian"))
    if endian is None:
        raise UnrecognizedEncoding("Endian", attribs.get("Endian"))
    intent = attribs.get("Intent", "NIFTI_INTENT_NONE")
    category, transform = _INTENTS.get(intent, _OTHER_INTENT)

    data_el = elem.find("Data")
    if data_el is None and encoding != "ExternalFileBinary":
        raise MissingElement("Data")
    text = (data_el.text or "").strip() if data_el is not None else ""

    count = math.prod(dims)
    dtype = np.dtype(datatype).newbyteorder(endian)
    flat = _decodepayload(text, encoding, dtype, attribs, count, basedir, chunksize)
    if flat.size != count:
        raise TruncatedPayload(count, flat.size)
    flat = flat.astype(dtype.newbyteorder("="))

    return GiftiDataArray(
        intent=intent,
        category=category,
        datatype=datatype,
        dims=dims,
        indexorder=indexorder,
        encoding=encoding,
        endian=endian,
        data=transform(reorder(flat, dims)),
        coordsystems=tuple(
            _parse_coord_system(c)
            for c in elem.findall("CoordinateSystemTransformMatrix")
        ),
        metadata=_parse_metadata(elem.find("MetaData")),
        attributes=attribs,
    )


def readgifti(source, strict=True, basedir=None, chunksize=1024) -> GiftiImage:
    """
    Decode every DataArray of a GIFTI file without assembling a surface.

    Parameters
    ----------
    source : str, os.PathLike, bytes or binary file object
        .gii/.gii.gz file, an in-memory XML document, or a readable stream
    strict : bool
        if True (default) the first failing DataArray aborts the read; if False
        failing arrays are skipped with a warning and listed in ``errors``
    basedir : str, optional
        directory for ExternalFileBinary payloads, defaults to the directory of
        ``source`` when it is a file name
    """
    if basedir is None:
        basedir = sourcedir(source)
    with opensource(source) as stream:
        root = ET.parse(stream).getroot()
    if root.tag != "GIFTI":
        root = root.find(".//GIFTI")
        if root is None:
            raise MissingElement("GIFTI")

    darrays, errors = [], []
    for i, da in enumerate(root.findall("DataArray")):
        try:
            darrays.append(giidataarray(da, basedir=basedir, chunksize=chunksize))
        except NIDataError as err:
            if strict:
                raise
            warnings.warn(f"skipping DataArray {i}: {err}")
            errors.append((i, err))

    return GiftiImage(
        version=root.get("Version", "1.0"),
        darrays=tuple(darrays),
        labeltable=giilabeltable(root.find("LabelTable")),
        metadata=_parse_metadata(root.find("MetaData")),
        attributes=dict(root.attrib),
        errors=tuple(errors),
    )


##====================================================================================
## surface assembly
##====================================================================================


def _labelcolors(keys, labeltable):
    missing = set()
    colors = np.full(keys.shape + (4,), np.nan)
    for idx, key in np.ndenumerate(keys):
        entry = labeltable.get(int(key))
        if entry is None:
            missing.add(int(key))
        else:
            colors[idx] = entry.rgba
    if missing:
        warnings.warn(f"label keys {sorted(missing)} are not in the label table")
    return colors


def _maskvalues(data, npoint):
    idx = np.asarray(data).ravel().astype(np.int64) - 1
    if idx.size and (idx.min() < 0 or idx.max() >= npoint):
        raise UnrecognizedEncoding("NODE_INDEX", "index outside the vertex range")
    mask = np.zeros(npoint, dtype=bool)
    mask[idx] = True
    return mask


def assemblesurface(gii: GiftiImage):
    """
    Build a SurfaceMesh when ``gii`` holds exactly one pointset and exactly one
    triangle array; otherwise return ``gii`` unchanged.

    Mask arrays become dense boolean vertex properties, label arrays are
    resolved to RGBA colors through the label table, and every other array is
    attached to the vertices or faces whose count matches its length.
    """
    points, faces = gii.byintent("Points"), gii.byintent("Faces")
    if len(points) != 1 or len(faces) != 1:
        return gii

    mesh = SurfaceMesh(
        points=points[0].data,
        faces=faces[0].data,
        labeltable=gii.labeltable,
        metadata=gii.metadata,
        source=gii,
    )

    k = 0
    for da in gii.darrays:
        if da.category in ("Points", "Faces"):
            continue
        k += 1
        name = da.name or f"Data{k}"
        base, n = name, k
        while name in mesh.vertexprops or name in mesh.faceprops:
            name = f"{base}{n}"
            n += 1

        if da.category == "Mask":
            try:
                mesh.vertexprops[name] = _maskvalues(da.data, mesh.npoint)
            except UnrecognizedEncoding as err:
                warnings.warn(f"skipping mask {name}: {err}")
            continue

        value = da.data
        if da.category == "Labels":
            if gii.labeltable is None:
                warnings.warn(f"no label table, keeping raw label keys for {name}")
            else:
                value = _labelcolors(da.data, gii.labeltable)

        nvalue = value.shape[0] if value.ndim else 1
        if nvalue == mesh.npoint:
            mesh.vertexprops[name] = value
        elif nvalue == mesh.nface:
            mesh.faceprops[name] = value
        else:
            warnings.warn(
                f"{name} has {nvalue} entries, matching neither "
                f"{mesh.npoint} vertices nor {mesh.nface} faces"
            )
    return mesh


def loadgifti(source, strict=True, basedir=None, chunksize=1024):
    """
    Load a GIFTI file.

    Returns a SurfaceMesh for single-surface files, or the decoded GiftiImage
    when the file does not hold exactly one pointset and one triangle array.
    """
    return assemblesurface(
        readgifti(source, strict=strict, basedir=basedir, chunksize=chunksize)
    )
