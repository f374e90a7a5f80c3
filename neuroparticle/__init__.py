"""
NeuroParticle
=============

Hand-gesture control of a 3D particle field from a webcam.

Modules:
    - core: Shared types, event bus, per-frame pipeline
    - capture: Camera frame acquisition
    - detection: MediaPipe hand landmarks and Joint Set validation
    - recognition: Gesture classification and motion smoothing
    - visualization: Particle renderer and HUD
    - utils: Configuration, logging, performance monitoring
"""

__version__ = "1.0.0"
