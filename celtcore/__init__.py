"""Fixed-point arithmetic, bit allocation, energy and pulse-vector quantisation for a low-delay audio codec."""

__version__ = "0.1.0"

__all__ = [
    "allocation",
    "coarse_energy",
    "complexops",
    "fine_energy",
    "fixedpoint",
    "intmath",
    "pulses",
    "vq",
]