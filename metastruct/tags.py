'''
This module contains the tag catalogues of the TIFF/EXIF directories.

Each directory scope (baseline IFD, Exif sub-IFD, GPS, Interoperability) has
its own closed catalogue; all of them expose the same capability (Taggable) so
that a Directory only needs the numeric ID of a tag.

Reference: TIFF 6.0 and CIPA DC-008 (Exif 2.32).
'''
from enum import Enum
from typing import Protocol, runtime_checkable


class TagHint(Enum):
    '''Suggests how the value of a tag is meant to be read'''
    BYTE      = '8-bit byte'
    STRING    = 'text string'
    DATE      = 'date and time'
    INTEGER   = '32-bit integer'
    RATIONAL  = '2 unsigned LONGs'
    UNDEFINED = 'likely a byte array'
    SHORT     = '16-bit short'
    FLOAT     = 'single precision'
    DOUBLE    = 'double precision'
    DEFAULT   = 'default'
    MASK      = 'masked string'
    UNKNOWN   = 'hint is unknown'

    @property
    def description(self) -> str:
        return self.value


class DirectoryIdentifier(Enum):
    IFD0        = 'IFD0'
    IFD1        = 'IFD1'
    IFD2        = 'IFD2'
    IFD3        = 'IFD3'
    EXIF        = 'Exif SubIFD'
    SUBIFD      = 'SubIFD'
    GPS         = 'GPS IFD'
    INTEROP     = 'Interop IFD'
    MAKER_NOTES = 'Maker Notes'
    UNKNOWN     = 'Unknown'

    @property
    def description(self) -> str:
        return self.value

    def next_directory(self) -> 'DirectoryIdentifier':
        '''The identifier of the directory that follows this one in the IFD0 -> IFD3 chain.'''
        try:
            return _NEXT_DIRECTORY[self]
        except KeyError:
            pass

        if self == DirectoryIdentifier.IFD3:
            raise ValueError('maximum TIFF IFD level (IFD3) reached')

        raise ValueError('directory %s does not link sequentially to a next main IFD' % self.description)


_NEXT_DIRECTORY = {
    DirectoryIdentifier.IFD0: DirectoryIdentifier.IFD1,
    DirectoryIdentifier.IFD1: DirectoryIdentifier.IFD2,
    DirectoryIdentifier.IFD2: DirectoryIdentifier.IFD3,
}


@runtime_checkable
class Taggable(Protocol):
    '''What a directory needs to know about a tag.'''

    @property
    def number_id(self) -> int:
        ...

    @property
    def name(self) -> str:
        ...

    @property
    def hint(self) -> TagHint:
        ...

    @property
    def directory_type(self) -> DirectoryIdentifier:
        ...


class TagTable(Enum):
    '''Base class for the tag catalogues: each member is (numeric ID[, hint]).'''

    def __new__(cls, number_id, hint=TagHint.DEFAULT):
        obj = object.__new__(cls)
        obj._value_ = number_id
        obj._hint = hint
        return obj

    def __str__(self):
        return self.name

    @property
    def number_id(self) -> int:
        return self.value

    @property
    def hint(self) -> TagHint:
        return self._hint

    @property
    def directory_type(self) -> DirectoryIdentifier:
        raise NotImplementedError('%s does not define its directory' % self.__class__.__name__)


class TagIFDBaseline(TagTable):
    '''Tags of the main image directories (IFD0, IFD1 ...).'''

    @property
    def directory_type(self):
        return DirectoryIdentifier.IFD0

    NEW_SUBFILE_TYPE              = 0x00FE
    SUBFILE_TYPE                  = 0x00FF
    IMAGE_WIDTH                   = 0x0100
    IMAGE_LENGTH                  = 0x0101
    BITS_PER_SAMPLE               = 0x0102
    COMPRESSION                   = 0x0103
    PHOTOMETRIC_INTERPRETATION    = 0x0106
    THRESHOLDING                  = 0x0107
    DOCUMENT_NAME                 = (0x010D, TagHint.STRING)
    IMAGE_DESCRIPTION             = (0x010E, TagHint.STRING)
    MAKE                          = (0x010F, TagHint.STRING)
    MODEL                         = (0x0110, TagHint.STRING)
    STRIP_OFFSETS                 = 0x0111
    ORIENTATION                   = (0x0112, TagHint.SHORT)
    SAMPLES_PER_PIXEL             = (0x0115, TagHint.SHORT)
    ROWS_PER_STRIP                = 0x0116
    STRIP_BYTE_COUNTS             = 0x0117
    X_RESOLUTION                  = (0x011A, TagHint.RATIONAL)
    Y_RESOLUTION                  = (0x011B, TagHint.RATIONAL)
    PLANAR_CONFIGURATION          = (0x011C, TagHint.SHORT)
    PAGE_NAME                     = (0x011D, TagHint.STRING)
    RESOLUTION_UNIT               = (0x0128, TagHint.SHORT)
    PAGE_NUMBER                   = 0x0129
    TRANSFER_FUNCTION             = 0x012D
    SOFTWARE                      = (0x0131, TagHint.STRING)
    DATE_TIME                     = (0x0132, TagHint.DATE)
    ARTIST                        = (0x013B, TagHint.STRING)
    HOST_COMPUTER                 = (0x013C, TagHint.STRING)
    PREDICTOR                     = 0x013D
    WHITE_POINT                   = (0x013E, TagHint.RATIONAL)
    PRIMARY_CHROMATICITIES        = (0x013F, TagHint.RATIONAL)
    TILE_WIDTH                    = 0x0142
    TILE_LENGTH                   = 0x0143
    TILE_OFFSETS                  = 0x0144
    TILE_BYTE_COUNTS              = 0x0145
    SUB_IFDS                      = 0x014A
    JPEG_INTERCHANGE_FORMAT       = 0x0201
    JPEG_INTERCHANGE_FORMAT_LENGTH = 0x0202
    YCBCR_COEFFICIENTS            = (0x0211, TagHint.RATIONAL)
    YCBCR_SUB_SAMPLING            = 0x0212
    YCBCR_POSITIONING             = (0x0213, TagHint.SHORT)
    REFERENCE_BLACK_WHITE         = (0x0214, TagHint.RATIONAL)
    XML_PACKET                    = (0x02BC, TagHint.UNDEFINED)
    RATING                        = (0x4746, TagHint.SHORT)
    RATING_PERCENT                = (0x4749, TagHint.SHORT)
    COPYRIGHT                     = (0x8298, TagHint.STRING)
    IPTC_NAA                      = (0x83BB, TagHint.UNDEFINED)
    PHOTOSHOP_SETTINGS            = (0x8649, TagHint.UNDEFINED)
    EXIF_POINTER                  = (0x8769, TagHint.INTEGER)
    ICC_PROFILE                   = (0x8773, TagHint.UNDEFINED)
    GPS_INFO_POINTER              = (0x8825, TagHint.INTEGER)
    XP_TITLE                      = (0x9C9B, TagHint.UNDEFINED)
    XP_COMMENT                    = (0x9C9C, TagHint.UNDEFINED)
    XP_AUTHOR                     = (0x9C9D, TagHint.UNDEFINED)
    XP_KEYWORDS                   = (0x9C9E, TagHint.UNDEFINED)
    XP_SUBJECT                    = (0x9C9F, TagHint.UNDEFINED)
    PRINT_IMAGE_MATCHING          = (0xC4A5, TagHint.UNDEFINED)


class TagIFDExif(TagTable):
    '''Tags of the Exif private directory, pointed by TagIFDBaseline.EXIF_POINTER.'''

    @property
    def directory_type(self):
        return DirectoryIdentifier.EXIF

    EXPOSURE_TIME                 = (0x829A, TagHint.RATIONAL)
    F_NUMBER                      = (0x829D, TagHint.RATIONAL)
    EXPOSURE_PROGRAM              = (0x8822, TagHint.SHORT)
    SPECTRAL_SENSITIVITY          = (0x8824, TagHint.STRING)
    ISO_SPEED_RATINGS             = (0x8827, TagHint.SHORT)
    OECF                          = (0x8828, TagHint.UNDEFINED)
    SENSITIVITY_TYPE              = (0x8830, TagHint.SHORT)
    RECOMMENDED_EXPOSURE_INDEX    = (0x8832, TagHint.INTEGER)
    EXIF_VERSION                  = (0x9000, TagHint.UNDEFINED)
    DATE_TIME_ORIGINAL            = (0x9003, TagHint.DATE)
    DATE_TIME_DIGITIZED           = (0x9004, TagHint.DATE)
    OFFSET_TIME                   = (0x9010, TagHint.STRING)
    OFFSET_TIME_ORIGINAL          = (0x9011, TagHint.STRING)
    OFFSET_TIME_DIGITIZED         = (0x9012, TagHint.STRING)
    COMPONENTS_CONFIGURATION      = (0x9101, TagHint.UNDEFINED)
    COMPRESSED_BITS_PER_PIXEL     = (0x9102, TagHint.RATIONAL)
    SHUTTER_SPEED_VALUE           = (0x9201, TagHint.RATIONAL)
    APERTURE_VALUE                = (0x9202, TagHint.RATIONAL)
    BRIGHTNESS_VALUE              = (0x9203, TagHint.RATIONAL)
    EXPOSURE_BIAS_VALUE           = (0x9204, TagHint.RATIONAL)
    MAX_APERTURE_VALUE            = (0x9205, TagHint.RATIONAL)
    SUBJECT_DISTANCE              = (0x9206, TagHint.RATIONAL)
    METERING_MODE                 = (0x9207, TagHint.SHORT)
    LIGHT_SOURCE                  = (0x9208, TagHint.SHORT)
    FLASH                         = (0x9209, TagHint.SHORT)
    FOCAL_LENGTH                  = (0x920A, TagHint.RATIONAL)
    SUBJECT_AREA                  = (0x9214, TagHint.SHORT)
    MAKER_NOTE                    = (0x927C, TagHint.UNDEFINED)
    USER_COMMENT                  = (0x9286, TagHint.UNDEFINED)
    SUB_SEC_TIME                  = (0x9290, TagHint.STRING)
    SUB_SEC_TIME_ORIGINAL         = (0x9291, TagHint.STRING)
    SUB_SEC_TIME_DIGITIZED        = (0x9292, TagHint.STRING)
    FLASHPIX_VERSION              = (0xA000, TagHint.UNDEFINED)
    COLOR_SPACE                   = (0xA001, TagHint.SHORT)
    PIXEL_X_DIMENSION             = (0xA002, TagHint.INTEGER)
    PIXEL_Y_DIMENSION             = (0xA003, TagHint.INTEGER)
    RELATED_SOUND_FILE            = (0xA004, TagHint.STRING)
    INTEROPERABILITY_POINTER      = (0xA005, TagHint.INTEGER)
    FLASH_ENERGY                  = (0xA20B, TagHint.RATIONAL)
    FOCAL_PLANE_X_RESOLUTION      = (0xA20E, TagHint.RATIONAL)
    FOCAL_PLANE_Y_RESOLUTION      = (0xA20F, TagHint.RATIONAL)
    FOCAL_PLANE_RESOLUTION_UNIT   = (0xA210, TagHint.SHORT)
    SUBJECT_LOCATION              = (0xA214, TagHint.SHORT)
    EXPOSURE_INDEX                = (0xA215, TagHint.RATIONAL)
    SENSING_METHOD                = (0xA217, TagHint.SHORT)
    FILE_SOURCE                   = (0xA300, TagHint.UNDEFINED)
    SCENE_TYPE                    = (0xA301, TagHint.UNDEFINED)
    CFA_PATTERN                   = (0xA302, TagHint.UNDEFINED)
    CUSTOM_RENDERED               = (0xA401, TagHint.SHORT)
    EXPOSURE_MODE                 = (0xA402, TagHint.SHORT)
    WHITE_BALANCE                 = (0xA403, TagHint.SHORT)
    DIGITAL_ZOOM_RATIO            = (0xA404, TagHint.RATIONAL)
    FOCAL_LENGTH_IN_35MM_FORMAT   = (0xA405, TagHint.SHORT)
    SCENE_CAPTURE_TYPE            = (0xA406, TagHint.SHORT)
    GAIN_CONTROL                  = (0xA407, TagHint.SHORT)
    CONTRAST                      = (0xA408, TagHint.SHORT)
    SATURATION                    = (0xA409, TagHint.SHORT)
    SHARPNESS                     = (0xA40A, TagHint.SHORT)
    SUBJECT_DISTANCE_RANGE        = (0xA40C, TagHint.SHORT)
    IMAGE_UNIQUE_ID               = (0xA420, TagHint.STRING)
    CAMERA_OWNER_NAME             = (0xA430, TagHint.STRING)
    BODY_SERIAL_NUMBER            = (0xA431, TagHint.STRING)
    LENS_SPECIFICATION            = (0xA432, TagHint.RATIONAL)
    LENS_MAKE                     = (0xA433, TagHint.STRING)
    LENS_MODEL                    = (0xA434, TagHint.STRING)
    LENS_SERIAL_NUMBER            = (0xA435, TagHint.STRING)
    GAMMA                         = (0xA500, TagHint.RATIONAL)


class TagIFDGPS(TagTable):
    '''Tags of the GPS directory, pointed by TagIFDBaseline.GPS_INFO_POINTER.'''

    @property
    def directory_type(self):
        return DirectoryIdentifier.GPS

    GPS_VERSION_ID                = (0x0000, TagHint.BYTE)
    GPS_LATITUDE_REF              = (0x0001, TagHint.STRING)
    GPS_LATITUDE                  = (0x0002, TagHint.RATIONAL)
    GPS_LONGITUDE_REF             = (0x0003, TagHint.STRING)
    GPS_LONGITUDE                 = (0x0004, TagHint.RATIONAL)
    GPS_ALTITUDE_REF              = (0x0005, TagHint.BYTE)
    GPS_ALTITUDE                  = (0x0006, TagHint.RATIONAL)
    GPS_TIME_STAMP                = (0x0007, TagHint.RATIONAL)
    GPS_SATELLITES                = (0x0008, TagHint.STRING)
    GPS_STATUS                    = (0x0009, TagHint.STRING)
    GPS_MEASURE_MODE              = (0x000A, TagHint.STRING)
    GPS_DOP                       = (0x000B, TagHint.RATIONAL)
    GPS_SPEED_REF                 = (0x000C, TagHint.STRING)
    GPS_SPEED                     = (0x000D, TagHint.RATIONAL)
    GPS_TRACK_REF                 = (0x000E, TagHint.STRING)
    GPS_TRACK                     = (0x000F, TagHint.RATIONAL)
    GPS_IMG_DIRECTION_REF         = (0x0010, TagHint.STRING)
    GPS_IMG_DIRECTION             = (0x0011, TagHint.RATIONAL)
    GPS_MAP_DATUM                 = (0x0012, TagHint.STRING)
    GPS_DEST_LATITUDE_REF         = (0x0013, TagHint.STRING)
    GPS_DEST_LATITUDE             = (0x0014, TagHint.RATIONAL)
    GPS_DEST_LONGITUDE_REF        = (0x0015, TagHint.STRING)
    GPS_DEST_LONGITUDE            = (0x0016, TagHint.RATIONAL)
    GPS_DEST_BEARING_REF          = (0x0017, TagHint.STRING)
    GPS_DEST_BEARING              = (0x0018, TagHint.RATIONAL)
    GPS_DEST_DISTANCE_REF         = (0x0019, TagHint.STRING)
    GPS_DEST_DISTANCE             = (0x001A, TagHint.RATIONAL)
    GPS_PROCESSING_METHOD         = (0x001B, TagHint.UNDEFINED)
    GPS_AREA_INFORMATION          = (0x001C, TagHint.UNDEFINED)
    GPS_DATE_STAMP                = (0x001D, TagHint.STRING)
    GPS_DIFFERENTIAL              = (0x001E, TagHint.SHORT)
    GPS_HPOSITIONING_ERROR        = (0x001F, TagHint.RATIONAL)


class TagExifInterop(TagTable):
    '''Tags of the Interoperability directory, pointed by TagIFDExif.INTEROPERABILITY_POINTER.'''

    @property
    def directory_type(self):
        return DirectoryIdentifier.INTEROP

    INTEROP_INDEX                 = (0x0001, TagHint.STRING)
    INTEROP_VERSION               = (0x0002, TagHint.UNDEFINED)
    RELATED_IMAGE_FILE_FORMAT     = (0x1000, TagHint.STRING)
    RELATED_IMAGE_WIDTH           = (0x1001, TagHint.INTEGER)
    RELATED_IMAGE_LENGTH          = (0x1002, TagHint.INTEGER)


class UnknownTag(object):
    '''A tag whose numeric ID is not in the catalogue of its directory.'''

    __slots__ = ('number_id', 'directory_type')

    hint = TagHint.UNKNOWN

    def __init__(self, number_id: int, directory_type: DirectoryIdentifier = DirectoryIdentifier.UNKNOWN):
        self.number_id = number_id
        self.directory_type = directory_type

    @property
    def name(self) -> str:
        return 'UNKNOWN_0x%04X' % self.number_id

    def __str__(self):
        return self.name

    def __repr__(self):
        return '<%s(0x%04x, %s)>' % (self.__class__.__name__, self.number_id, self.directory_type.name)

    def __eq__(self, other):
        if not isinstance(other, UnknownTag):
            return NotImplemented
        return (self.number_id, self.directory_type) == (other.number_id, other.directory_type)

    def __hash__(self):
        return hash((self.number_id, self.directory_type))


# the main image directories share the baseline catalogue
SCOPE_CATALOGUE = {
    DirectoryIdentifier.IFD0:    TagIFDBaseline,
    DirectoryIdentifier.IFD1:    TagIFDBaseline,
    DirectoryIdentifier.IFD2:    TagIFDBaseline,
    DirectoryIdentifier.IFD3:    TagIFDBaseline,
    DirectoryIdentifier.SUBIFD:  TagIFDBaseline,
    DirectoryIdentifier.EXIF:    TagIFDExif,
    DirectoryIdentifier.GPS:     TagIFDGPS,
    DirectoryIdentifier.INTEROP: TagExifInterop,
}


def lookup_tag(number_id: int, directory_type: DirectoryIdentifier) -> Taggable:
    '''Resolve a numeric ID into the catalogue of the given directory scope.

    Baseline tags are allowed everywhere (some writers put them in the Exif
    directory); anything else becomes an UnknownTag.'''
    catalogues = [SCOPE_CATALOGUE.get(directory_type), TagIFDBaseline]

    for catalogue in catalogues:
        if catalogue is None:
            continue

        try:
            return catalogue(number_id)
        except ValueError:
            continue

    return UnknownTag(number_id, directory_type)
