"""
Runtime support: render-state caching and derived file naming.
"""

from binaural_mixer.runtime.cache import (
    RenderCache,
    LRUCache,
    CacheStats,
    append_filename,
    target_filename,
    interferer_filename,
    copy_filename,
    TARGET_SUFFIX,
    INTERFERER_SUFFIX,
    COPY_SUFFIX,
)

__all__ = [
    "RenderCache",
    "LRUCache",
    "CacheStats",
    "append_filename",
    "target_filename",
    "interferer_filename",
    "copy_filename",
    "TARGET_SUFFIX",
    "INTERFERER_SUFFIX",
    "COPY_SUFFIX",
]
