"""Application layer: the edit session and its state objects.

- `session.EditSession` owns one source image, its zoom bounds and viewport state
- `state.viewport_state.ViewportState` is the mutable slider/offset/drag state
"""
