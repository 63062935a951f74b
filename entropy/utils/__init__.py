"""
entropy.utils
-------------

Light helpers shared across the entropy components: byte/hex handling
(:mod:`entropy.utils.bytes`) and the hash primitive (:mod:`entropy.utils.hash`).

No eager imports here to keep dependency order simple.
"""

__all__: list[str] = []
