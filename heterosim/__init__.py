# heterosim/__init__.py
"""HeteroSim: 1D multi-carrier drift–diffusion for heterojunction devices."""
__version__ = "0.1.0"
