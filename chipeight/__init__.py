"""A CHIP-8 virtual machine (chipeight.machine) with a pygame front end (chipeight.app)."""

__version__ = "0.1.0"
__all__ = ["__version__"]