"""
GeoCanvas - Configuration Module
================================

Central configuration for all global settings.
"""

from .tolerances import Tolerances, hit_radius, update_epsilon
from .feature_flags import is_enabled, set_flag, get_all_flags, FEATURE_FLAGS
