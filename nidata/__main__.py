"""Command line utility for nidata.

Prints a summary of NIfTI-1 (.nii/.nii.gz) and GIFTI (.gii/.gii.gz) files.

Call

    python -mnidata -h

to get help with command line usage.
"""

import argparse
import re
import sys

from . import NIDataError, assemblesurface, readniidata, readgifti, interpretnifti
from .gifti import SurfaceMesh
from .nifti import VolumeImage


def _summarize_nifti(path):
    header, voxels = readniidata(path)
    lines = [
        f"{path}: NIfTI-1 ({header.magic}, byte order '{header.byteorder}')",
        f"  Dim: {list(header.dim)}",
        f"  DataType: {header.datatype} ({header.bitpix} bits)",
        f"  VoxelSize: {list(header.pixdim)}",
        f"  Unit: {header.units}",
        f"  VoxelOffset: {header.vox_offset}",
        f"  Voxels: shape={voxels.shape}, dtype={voxels.dtype}",
    ]
    if header.descrip:
        lines.append(f"  Description: {header.descrip}")
    result = interpretnifti(header, voxels)
    if not isinstance(result, VolumeImage):
        lines.append(f"  Interpreted as a {result.size}-sample series")
    return lines


def _summarize_gifti(path, strict):
    gii = readgifti(path, strict=strict)
    lines = [f"{path}: GIFTI {gii.version}, {len(gii.darrays)} data arrays"]
    for da in gii.darrays:
        lines.append(
            f"  {da.category:<10} {da.intent} {da.datatype} dims={list(da.dims)} "
            f"{da.encoding}"
        )
    if gii.labeltable is not None:
        lines.append(f"  Labels: {len(gii.labeltable)} entries")
    for idx, err in gii.errors:
        lines.append(f"  DataArray {idx} skipped: {err}")
    surf = assemblesurface(gii)
    if isinstance(surf, SurfaceMesh):
        lines.append(f"  Surface: {surf!r}")
    return lines


def main(argv=None):
    #
    # get arguments and print the summaries
    #

    parser = argparse.ArgumentParser(
        description="Print a summary of NIfTI-1 and GIFTI files."
    )
    parser.add_argument(
        "file",
        nargs="+",
        help="path to a NIfTI-1 (.nii/.nii.gz) or GIFTI (.gii/.gii.gz) file",
    )
    parser.add_argument(
        "-k",
        "--keep_going",
        action="store_const",
        const=True,
        default=False,
        help="skip GIFTI data arrays that fail to decode instead of stopping",
    )

    args = parser.parse_args(argv)

    status = 0
    for path in args.file:
        try:
            if re.search(r"\.[Nn][Ii][Ii](\.[Gg][Zz])*$", path):
                lines = _summarize_nifti(path)
            elif re.search(r"\.[Gg][Ii][Ii](\.[Gg][Zz])*$", path):
                lines = _summarize_gifti(path, strict=not args.keep_going)
            else:
                print("Unsupported file extension on file: {}".format(path))
                status = 1
                continue
        except (NIDataError, OSError) as e:
            print("Error: {}: {}".format(path, e))
            status = 1
            continue
        print("\n".join(lines))
    return status


if __name__ == "__main__":
    sys.exit(main())
