'''fit.py: Contains FIT base type definitions and file header constants.'''

HEADER_WITH_CRC_SIZE = 14
HEADER_WITHOUT_CRC_SIZE = 12
CRC_SIZE = 2
PROTOCOL_VERSION = 0x10  # 1.0
PROFILE_VERSION = 2078  # 20.78
FIT_DATA_TYPE = b'.FIT'

RECORD_HEADER_COMPRESSED_MASK = 0x80
RECORD_HEADER_DEFINITION_MASK = 0x40
RECORD_HEADER_DEV_DATA_MASK = 0x20
RECORD_HEADER_RESERVED_MASK = 0x10
RECORD_HEADER_LOCAL_MESG_NUM_MASK = 0x0F
MAX_LOCAL_MESGS = 16

ARCH_LITTLE_ENDIAN = 0
ARCH_BIG_ENDIAN = 1
BYTE_ORDER = {
    ARCH_LITTLE_ENDIAN: '<',
    ARCH_BIG_ENDIAN: '>',
}

BASE_TYPE = {
    'ENUM': 0x00,
    'SINT8': 0x01,
    'UINT8': 0x02,
    'SINT16': 0x83,
    'UINT16': 0x84,
    'SINT32': 0x85,
    'UINT32': 0x86,
    'STRING': 0x07,
    'FLOAT32': 0x88,
    'FLOAT64': 0x89,
    'UINT8Z': 0x0A,
    'UINT16Z': 0x8B,
    'UINT32Z': 0x8C,
    'BYTE': 0x0D,
    'SINT64': 0x8E,
    'UINT64': 0x8F,
    'UINT64Z': 0x90,
}

BASE_TYPE_DEFINITIONS = {
    0x00: {'size': 1, 'type': BASE_TYPE['ENUM'], 'type_code': 'B', 'invalid': 0xFF, 'min': 0, 'max': 0xFF},
    0x01: {'size': 1, 'type': BASE_TYPE['SINT8'], 'type_code': 'b', 'invalid': 0x7F, 'min': -0x80, 'max': 0x7F},
    0x02: {'size': 1, 'type': BASE_TYPE['UINT8'], 'type_code': 'B', 'invalid': 0xFF, 'min': 0, 'max': 0xFF},
    0x83: {'size': 2, 'type': BASE_TYPE['SINT16'], 'type_code': 'h', 'invalid': 0x7FFF, 'min': -0x8000, 'max': 0x7FFF},
    0x84: {'size': 2, 'type': BASE_TYPE['UINT16'], 'type_code': 'H', 'invalid': 0xFFFF, 'min': 0, 'max': 0xFFFF},
    0x85: {'size': 4, 'type': BASE_TYPE['SINT32'], 'type_code': 'i', 'invalid': 0x7FFFFFFF,
           'min': -0x80000000, 'max': 0x7FFFFFFF},
    0x86: {'size': 4, 'type': BASE_TYPE['UINT32'], 'type_code': 'I', 'invalid': 0xFFFFFFFF,
           'min': 0, 'max': 0xFFFFFFFF},
    0x07: {'size': 1, 'type': BASE_TYPE['STRING'], 'type_code': 's', 'invalid': 0x00, 'min': 0, 'max': 0xFF},
    0x88: {'size': 4, 'type': BASE_TYPE['FLOAT32'], 'type_code': 'f', 'invalid': 0xFFFFFFFF,
           'min': None, 'max': None},
    0x89: {'size': 8, 'type': BASE_TYPE['FLOAT64'], 'type_code': 'd', 'invalid': 0xFFFFFFFFFFFFFFFF,
           'min': None, 'max': None},
    0x0A: {'size': 1, 'type': BASE_TYPE['UINT8Z'], 'type_code': 'B', 'invalid': 0x00, 'min': 0, 'max': 0xFF},
    0x8B: {'size': 2, 'type': BASE_TYPE['UINT16Z'], 'type_code': 'H', 'invalid': 0x0000, 'min': 0, 'max': 0xFFFF},
    0x8C: {'size': 4, 'type': BASE_TYPE['UINT32Z'], 'type_code': 'I', 'invalid': 0x00000000,
           'min': 0, 'max': 0xFFFFFFFF},
    0x0D: {'size': 1, 'type': BASE_TYPE['BYTE'], 'type_code': 'B', 'invalid': 0xFF, 'min': 0, 'max': 0xFF},
    0x8E: {'size': 8, 'type': BASE_TYPE['SINT64'], 'type_code': 'q', 'invalid': 0x7FFFFFFFFFFFFFFF,
           'min': -0x8000000000000000, 'max': 0x7FFFFFFFFFFFFFFF},
    0x8F: {'size': 8, 'type': BASE_TYPE['UINT64'], 'type_code': 'Q', 'invalid': 0xFFFFFFFFFFFFFFFF,
           'min': 0, 'max': 0xFFFFFFFFFFFFFFFF},
    0x90: {'size': 8, 'type': BASE_TYPE['UINT64Z'], 'type_code': 'Q', 'invalid': 0x0000000000000000,
           'min': 0, 'max': 0xFFFFFFFFFFFFFFFF},
}

# Base type number (low 5 bits) -> tag, for files that set the endian bit oddly
BASE_TYPE_NUMBER_TO_TAG = {tag & 0x1F: tag for tag in BASE_TYPE_DEFINITIONS}
