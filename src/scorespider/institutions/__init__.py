"""院校配置"""

from .profiles import (
    InstitutionProfile,
    get_profile,
    list_profiles,
    load_profile_yaml,
    register_profile,
)

__all__ = [
    "InstitutionProfile",
    "get_profile",
    "list_profiles",
    "load_profile_yaml",
    "register_profile",
]
