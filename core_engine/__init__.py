"""ASCII Raycaster: Core Engine Package.

Camera, primitive intersection kernels, shading, the character frame
buffer and the frame renderer.
"""
