"""Image engine: pixel-level decode and encode.

- `decoder`: bytes -> RGB numpy array (pyvips)
- `encoder`: RGB numpy array -> JPEG bytes (pyvips)
- `loader`: background decode with stale-result dropping (PySide6)

Import submodules directly; `loader` pulls in Qt, the other two do not.
"""
