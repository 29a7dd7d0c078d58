"""
Unit tests for the GIFTI reader

Run with: python -m unittest test.testgifti -v
"""

import unittest
import numpy as np
import io
import tempfile
import base64
import gzip
import os
import sys
import shutil

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from nidata import (
    GiftiImage,
    SurfaceMesh,
    readgifti,
    loadgifti,
    assemblesurface,
    base64zlibencode,
    MissingElement,
    TruncatedPayload,
    UnrecognizedEncoding,
)


def dataarray(
    intent,
    datatype,
    dims,
    data,
    encoding="ASCII",
    order="RowMajorOrder",
    endian="LittleEndian",
    extra="",
    inner="",
):
    dimattr = " ".join(f'Dim{i}="{d}"' for i, d in enumerate(dims))
    body = "" if data is None else f"<Data>{data}</Data>"
    return f"""<DataArray Intent="{intent}"
    DataType="{datatype}"
    ArrayIndexingOrder="{order}"
    Dimensionality="{len(dims)}"
    {dimattr}
    Encoding="{encoding}"
    Endian="{endian}" {extra}>
{inner}{body}
</DataArray>
"""


def gifti(*arrays, labeltable="", metadata=""):
    body = "".join(arrays)
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE GIFTI SYSTEM "http://www.nitrc.org/frs/download.php/1594/gifti.dtd">
<GIFTI Version="1.0" NumberOfDataArrays="{len(arrays)}">
{metadata}{labeltable}{body}</GIFTI>""".encode(
        "utf-8"
    )


def named(name):
    return f"<MetaData><MD><Name>Name</Name><Value>{name}</Value></MD></MetaData>"


def b64(arr):
    return base64.b64encode(np.ascontiguousarray(arr).tobytes()).decode("ascii")


POINTS = dataarray(
    "NIFTI_INTENT_POINTSET",
    "NIFTI_TYPE_FLOAT32",
    (3, 3),
    "0 0 0\n1 0 0\n0 1 0",
    inner="""<CoordinateSystemTransformMatrix>
<DataSpace>NIFTI_XFORM_TALAIRACH</DataSpace>
<TransformedSpace>NIFTI_XFORM_TALAIRACH</TransformedSpace>
<MatrixData>1 0 0 0 0 1 0 0 0 0 1 0 0 0 0 1</MatrixData>
</CoordinateSystemTransformMatrix>
""",
)
FACES = dataarray("NIFTI_INTENT_TRIANGLE", "NIFTI_TYPE_INT32", (1, 3), "0 1 2")

LABELTABLE = """<LabelTable>
<Label Key="0" Red="0.667" Green="0.667" Blue="0.667" Alpha="1.0">???</Label>
<Label Key="1" Red="1.0" Green="0.0" Blue="0.0" Alpha="1.0">V1</Label>
</LabelTable>
"""


class TestDataArrayDecoding(unittest.TestCase):
    """Tests for the DataArray encodings and index orders."""

    def setUp(self):
        self.values = np.arange(6, dtype=np.float32).reshape(2, 3) * 1.5

    def test_ascii(self):
        gii = readgifti(gifti(POINTS))
        da = gii.darrays[0]
        self.assertEqual(da.category, "Points")
        self.assertEqual(da.datatype, "float32")
        self.assertEqual(da.dims, (3, 3))
        self.assertEqual(da.data.dtype, np.float32)
        np.testing.assert_array_equal(da.data, [[0, 0, 0], [1, 0, 0], [0, 1, 0]])

    def test_coordsystem(self):
        da = readgifti(gifti(POINTS)).darrays[0]
        self.assertEqual(len(da.coordsystems), 1)
        self.assertEqual(da.coordsystem.dataspace, "NIFTI_XFORM_TALAIRACH")
        np.testing.assert_array_equal(da.coordsystem.matrix, np.eye(4))

    def test_base64(self):
        xml = gifti(
            dataarray(
                "NIFTI_INTENT_SHAPE",
                "NIFTI_TYPE_FLOAT32",
                (2, 3),
                b64(self.values.astype("<f4")),
                encoding="Base64Binary",
            )
        )
        np.testing.assert_array_equal(readgifti(xml).darrays[0].data, self.values)

    def test_gzip_base64(self):
        xml = gifti(
            dataarray(
                "NIFTI_INTENT_SHAPE",
                "NIFTI_TYPE_FLOAT32",
                (2, 3),
                base64zlibencode(self.values.astype("<f4").tobytes()),
                encoding="GZipBase64Binary",
            )
        )
        da = readgifti(xml).darrays[0]
        self.assertEqual(da.encoding, "GZipBase64Binary")
        np.testing.assert_array_equal(da.data, self.values)

    def test_big_endian(self):
        ints = np.array([1, -2, 300000], dtype=">i4")
        xml = gifti(
            dataarray(
                "NIFTI_INTENT_SHAPE",
                "NIFTI_TYPE_INT32",
                (3,),
                b64(ints),
                encoding="Base64Binary",
                endian="BigEndian",
            )
        )
        da = readgifti(xml).darrays[0]
        self.assertEqual(da.endian, ">")
        np.testing.assert_array_equal(da.data, [1, -2, 300000])

    def test_column_major(self):
        rowmajor = dataarray(
            "NIFTI_INTENT_SHAPE",
            "NIFTI_TYPE_FLOAT32",
            (2, 3),
            b64(self.values.astype("<f4")),
            encoding="Base64Binary",
        )
        colmajor = dataarray(
            "NIFTI_INTENT_SHAPE",
            "NIFTI_TYPE_FLOAT32",
            (2, 3),
            b64(self.values.T.astype("<f4")),
            encoding="Base64Binary",
            order="ColumnMajorOrder",
        )
        gii = readgifti(gifti(rowmajor, colmajor))
        self.assertEqual(gii.darrays[1].indexorder, "ColumnMajorOrder")
        np.testing.assert_array_equal(gii.darrays[0].data, gii.darrays[1].data)
        self.assertEqual(gii.darrays[1].data.shape, (2, 3))

    def test_one_indexed(self):
        gii = readgifti(gifti(POINTS, FACES))
        faces = gii.byintent("Faces")[0]
        np.testing.assert_array_equal(faces.data, [[1, 2, 3]])

    def test_rgb_vectors(self):
        xml = gifti(
            dataarray(
                "NIFTI_INTENT_RGB_VECTOR",
                "NIFTI_TYPE_UINT8",
                (2, 3),
                "255 0 0 0 128 255",
            )
        )
        da = readgifti(xml).darrays[0]
        self.assertEqual(da.category, "Overlay")
        self.assertEqual(da.data.dtype.names, ("r", "g", "b"))
        self.assertEqual(da.data.shape, (2,))
        self.assertEqual(int(da.data["g"][1]), 128)

    def test_other_intent(self):
        xml = gifti(dataarray("NIFTI_INTENT_NONE", "NIFTI_TYPE_UINT8", (2,), "3 4"))
        da = readgifti(xml).darrays[0]
        self.assertEqual(da.category, "Other")
        self.assertEqual(da.data.dtype, np.uint8)

    def test_external_file(self):
        tmp_dir = tempfile.mkdtemp()
        try:
            with open(os.path.join(tmp_dir, "data.bin"), "wb") as f:
                f.write(b"\x00" * 8 + self.values.astype("<f4").tobytes())
            xml = gifti(
                dataarray(
                    "NIFTI_INTENT_SHAPE",
                    "NIFTI_TYPE_FLOAT32",
                    (2, 3),
                    None,
                    encoding="ExternalFileBinary",
                    extra='ExternalFileName="data.bin" ExternalFileOffset="8"',
                )
            )
            da = readgifti(xml, basedir=tmp_dir).darrays[0]
            np.testing.assert_array_equal(da.data, self.values)
        finally:
            shutil.rmtree(tmp_dir)


class TestDecodingErrors(unittest.TestCase):
    """Tests for rejected DataArrays."""

    def test_unknown_datatype(self):
        xml = gifti(dataarray("NIFTI_INTENT_SHAPE", "NIFTI_TYPE_FLOAT64", (2,), "1 2"))
        with self.assertRaises(UnrecognizedEncoding) as cm:
            readgifti(xml)
        self.assertEqual(cm.exception.attribute, "DataType")

    def test_unknown_order(self):
        xml = gifti(
            dataarray(
                "NIFTI_INTENT_SHAPE", "NIFTI_TYPE_FLOAT32", (2,), "1 2", order="Diagonal"
            )
        )
        with self.assertRaises(UnrecognizedEncoding) as cm:
            readgifti(xml)
        self.assertEqual(cm.exception.attribute, "ArrayIndexingOrder")

    def test_unknown_encoding(self):
        xml = gifti(
            dataarray(
                "NIFTI_INTENT_SHAPE", "NIFTI_TYPE_FLOAT32", (2,), "1 2", encoding="Hex"
            )
        )
        with self.assertRaises(UnrecognizedEncoding):
            readgifti(xml)

    def test_unknown_endian(self):
        xml = gifti(
            dataarray(
                "NIFTI_INTENT_SHAPE", "NIFTI_TYPE_FLOAT32", (2,), "1 2", endian="Middle"
            )
        )
        with self.assertRaises(UnrecognizedEncoding):
            readgifti(xml)

    def test_missing_data(self):
        xml = gifti(dataarray("NIFTI_INTENT_SHAPE", "NIFTI_TYPE_FLOAT32", (2,), None))
        with self.assertRaises(MissingElement):
            readgifti(xml)

    def test_count_mismatch(self):
        xml = gifti(dataarray("NIFTI_INTENT_SHAPE", "NIFTI_TYPE_FLOAT32", (4,), "1 2 3"))
        with self.assertRaises(TruncatedPayload) as cm:
            readgifti(xml)
        self.assertEqual(cm.exception.expected, 4)
        self.assertEqual(cm.exception.found, 3)

    def test_not_gifti(self):
        with self.assertRaises(MissingElement):
            readgifti(b"<Surface><DataArray/></Surface>")

    def test_non_strict(self):
        bad = dataarray("NIFTI_INTENT_SHAPE", "NIFTI_TYPE_FLOAT64", (3,), "1 2 3")
        with self.assertWarns(UserWarning):
            gii = readgifti(gifti(POINTS, bad, FACES), strict=False)
        self.assertEqual(len(gii.darrays), 2)
        self.assertEqual(len(gii.errors), 1)
        self.assertEqual(gii.errors[0][0], 1)
        self.assertIsInstance(gii.errors[0][1], UnrecognizedEncoding)

    def test_ascii_out_of_range(self):
        xml = gifti(dataarray("NIFTI_INTENT_SHAPE", "NIFTI_TYPE_UINT8", (2,), "300 -1"))
        with self.assertRaises(UnrecognizedEncoding):
            readgifti(xml)

    def test_ascii_fractional_integer(self):
        xml = gifti(dataarray("NIFTI_INTENT_SHAPE", "NIFTI_TYPE_INT32", (2,), "1.7 2"))
        with self.assertRaises(UnrecognizedEncoding):
            readgifti(xml)

    def test_partial_element(self):
        xml = gifti(
            dataarray(
                "NIFTI_INTENT_SHAPE",
                "NIFTI_TYPE_FLOAT32",
                (2,),
                base64.b64encode(b"\x00" * 5).decode("ascii"),
                encoding="Base64Binary",
            )
        )
        with self.assertRaises(TruncatedPayload) as cm:
            readgifti(xml)
        self.assertEqual(cm.exception.found, 1)
        self.assertIsInstance(cm.exception.found, int)

    def test_missing_external_file(self):
        tmp_dir = tempfile.mkdtemp()
        try:
            missing = dataarray(
                "NIFTI_INTENT_SHAPE",
                "NIFTI_TYPE_FLOAT32",
                (3,),
                None,
                encoding="ExternalFileBinary",
                extra='ExternalFileName="nofile.bin"',
            )
            xml = gifti(POINTS, missing, FACES)
            with self.assertRaises(UnrecognizedEncoding):
                readgifti(xml, basedir=tmp_dir)
            with self.assertWarns(UserWarning):
                gii = readgifti(xml, strict=False, basedir=tmp_dir)
            self.assertEqual(len(gii.darrays), 2)
            self.assertEqual([i for i, _ in gii.errors], [1])
            self.assertIsInstance(assemblesurface(gii), SurfaceMesh)
        finally:
            shutil.rmtree(tmp_dir)


class TestSurfaceAssembly(unittest.TestCase):
    """Tests for surface construction from decoded arrays."""

    def test_mesh(self):
        surf = loadgifti(gifti(POINTS, FACES))
        self.assertIsInstance(surf, SurfaceMesh)
        self.assertEqual(surf.npoint, 3)
        self.assertEqual(surf.nface, 1)
        np.testing.assert_array_equal(surf.faces, [[1, 2, 3]])
        np.testing.assert_array_equal(surf.face(), [[0, 1, 2]])
        np.testing.assert_array_equal(surf.face(zero_based=False), [[1, 2, 3]])
        self.assertIn("node=3", repr(surf))

    def test_two_pointsets(self):
        gii = loadgifti(gifti(POINTS, POINTS, FACES))
        self.assertIsInstance(gii, GiftiImage)
        self.assertEqual(len(gii.arrays["Points"]), 2)

    def test_no_faces(self):
        self.assertIsInstance(loadgifti(gifti(POINTS)), GiftiImage)

    def test_vertex_and_face_properties(self):
        thickness = dataarray(
            "NIFTI_INTENT_SHAPE",
            "NIFTI_TYPE_FLOAT32",
            (3,),
            "2.5 2.3 2.8",
            inner=named("Thickness"),
        )
        area = dataarray("NIFTI_INTENT_SHAPE", "NIFTI_TYPE_FLOAT32", (1,), "0.5")
        surf = loadgifti(gifti(POINTS, FACES, thickness, area))
        np.testing.assert_array_almost_equal(
            surf.vertexprops["Thickness"], [2.5, 2.3, 2.8]
        )
        np.testing.assert_array_almost_equal(surf.faceprops["Data2"], [0.5])

    def test_mismatched_property(self):
        extra = dataarray("NIFTI_INTENT_SHAPE", "NIFTI_TYPE_FLOAT32", (5,), "1 2 3 4 5")
        with self.assertWarns(UserWarning):
            surf = loadgifti(gifti(POINTS, FACES, extra))
        self.assertEqual(surf.vertexprops, {})
        self.assertEqual(surf.faceprops, {})

    def test_labels(self):
        labels = dataarray("NIFTI_INTENT_LABEL", "NIFTI_TYPE_INT32", (3,), "0 1 1")
        surf = loadgifti(gifti(POINTS, FACES, labels, labeltable=LABELTABLE))
        self.assertEqual(sorted(surf.labeltable), [0, 1])
        self.assertEqual(surf.labeltable[1].name, "V1")
        self.assertEqual(surf.labeltable[1].rgba, (1.0, 0.0, 0.0, 1.0))
        colors = surf.vertexprops["Data1"]
        self.assertEqual(colors.shape, (3, 4))
        np.testing.assert_array_almost_equal(colors[2], [1, 0, 0, 1])
        np.testing.assert_array_almost_equal(colors[0], [0.667, 0.667, 0.667, 1])

    def test_unknown_label_key(self):
        labels = dataarray("NIFTI_INTENT_LABEL", "NIFTI_TYPE_INT32", (3,), "0 1 7")
        with self.assertWarns(UserWarning):
            surf = loadgifti(gifti(POINTS, FACES, labels, labeltable=LABELTABLE))
        self.assertTrue(np.all(np.isnan(surf.vertexprops["Data1"][2])))

    def test_labeltable_absent_or_empty(self):
        self.assertIsNone(readgifti(gifti(POINTS)).labeltable)
        self.assertEqual(
            readgifti(gifti(POINTS, labeltable="<LabelTable></LabelTable>")).labeltable,
            {},
        )

    def test_property_name_collision(self):
        arrays = [
            dataarray(
                "NIFTI_INTENT_SHAPE",
                "NIFTI_TYPE_FLOAT32",
                (3,),
                f"{v} {v} {v}",
                inner=named(name),
            )
            for v, name in ((1, "X"), (2, "X3"), (3, "X"))
        ]
        surf = loadgifti(gifti(POINTS, FACES, *arrays))
        self.assertEqual(sorted(surf.vertexprops), ["X", "X3", "X4"])
        np.testing.assert_array_equal(surf.vertexprops["X3"], [2, 2, 2])
        np.testing.assert_array_equal(surf.vertexprops["X4"], [3, 3, 3])

    def test_mask(self):
        mask = dataarray("NIFTI_INTENT_NODE_INDEX", "NIFTI_TYPE_INT32", (2,), "0 2")
        surf = loadgifti(gifti(POINTS, FACES, mask))
        np.testing.assert_array_equal(surf.vertexprops["Data1"], [True, False, True])

    def test_metadata(self):
        meta = "<MetaData><MD><Name>date</Name><Value>Thu Nov 15 2007</Value></MD></MetaData>"
        surf = loadgifti(gifti(POINTS, FACES, metadata=meta))
        self.assertEqual(surf.metadata["date"], "Thu Nov 15 2007")
        self.assertEqual(surf.source.version, "1.0")

    def test_assemble(self):
        gii = readgifti(gifti(POINTS, FACES))
        self.assertIsInstance(assemblesurface(gii), SurfaceMesh)


class TestGIFTIFiles(unittest.TestCase):
    """Tests for reading GIFTI files from disk."""

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.xml = gifti(POINTS, FACES)

    def tearDown(self):
        shutil.rmtree(self.tmp_dir)

    def test_gii_file(self):
        path = os.path.join(self.tmp_dir, "test.gii")
        with open(path, "wb") as f:
            f.write(self.xml)
        self.assertIsInstance(loadgifti(path), SurfaceMesh)

    def test_gii_gz_file(self):
        path = os.path.join(self.tmp_dir, "test.gii.gz")
        with open(path, "wb") as f:
            f.write(gzip.compress(self.xml))
        self.assertEqual(loadgifti(path).npoint, 3)

    def test_stream_position(self):
        stream = io.BytesIO(self.xml)
        readgifti(stream)
        self.assertEqual(stream.tell(), 0)


if __name__ == "__main__":
    unittest.main(verbosity=2)
