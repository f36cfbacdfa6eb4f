"""Two-city firm location model: dynamic relocation, equilibrium share and transitions."""

__version__ = "0.1.0"
