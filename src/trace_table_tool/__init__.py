"""
Trace Table Tool Package
"""

from .models import StringTable, Profile, Thread
from .errors import (
    TraceTableError, UnrecognizedFormatError, FutureVersionError, CorruptStackTableError, SymbolProviderError,
)
from .parser import unserialize_profile_of_arbitrary_format, parse_profile_file
from .serializer import serialize_profile, unserialize_profile
from .call_tree import CallNodeInfo, compute_call_node_info, compute_inverted_call_node_info
from .counters import accumulate_counter_samples

__version__ = "0.1.0"

__all__ = [
    'StringTable',
    'Profile',
    'Thread',
    'TraceTableError',
    'UnrecognizedFormatError',
    'FutureVersionError',
    'CorruptStackTableError',
    'SymbolProviderError',
    'unserialize_profile_of_arbitrary_format',
    'parse_profile_file',
    'serialize_profile',
    'unserialize_profile',
    'CallNodeInfo',
    'compute_call_node_info',
    'compute_inverted_call_node_info',
    'accumulate_counter_samples',
]
