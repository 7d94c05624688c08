'''trackswap_fit: Encoder and decoder for Garmin FIT activity and course files.'''

from .builder import build_activity, build_course, encode_activity, encode_course
from .decoder import Decoder, FileHeader, FitFile, decode
from .encoder import Encoder, create_header, encode
from .errors import (ChecksumMismatchError, FitError, FramingError, HeaderError, IntegrityError,
                     SizeMismatchError, TruncatedFileError, UnknownTypeError)
from .framer import Message
from .plugins import MessagePlugin, PluginRegistry, StructurePlugin
from .profile import Profile, register_message
from .structure import (CourseStructurePlugin, FileHeaderPlugin, SessionStructurePlugin, default_plugins,
                        file_header_info, structure_courses, structure_sessions)

__version__ = '0.1.0'
