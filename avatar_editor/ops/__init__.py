"""Use-case / operations layer.

Zoom geometry, the pan state machine and the avatar compositor.

Keep `geometry` and `compositor` free of Qt so they can be used headless;
only `pan_controller` talks to the Qt event system.
"""
