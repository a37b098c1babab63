"""
# Metastruct: image metadata containers for humans.

Image files carry their metadata in self-describing binary containers:
TIFF-style Image File Directories (EXIF in TIFF and JPEG files) and the
ISO Base Media File Format boxes (HEIF/HEIC). Both are sequences of typed
records identified by a numeric tag or a four-character code, whose payload
is either stored inline or referenced by an offset.

The package is read-only and works on data already in memory:

 1. streams: bounds-checked random access to the bytes, with a byte order
 2. fields: the TIFF field types and how to decode them
 3. tags: the catalogues of tags, one per directory scope
 4. directory: the decoded entries of a directory and typed access to them
 5. tiff: walks the IFDs of a TIFF structure
 6. boxes: walks the box tree of an ISO BMFF file

A directory is built in a single pass and then frozen, so that it can be
shared between readers. Every read outside the data raises BoundsException;
nothing is silently zero-filled.
"""
