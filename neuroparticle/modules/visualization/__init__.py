"""Particle field rendering and HUD overlay."""
from .particle_renderer import ParticleField
from .dashboard import Dashboard

__all__ = ["ParticleField", "Dashboard"]
