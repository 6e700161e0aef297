# Fake implementations for testing

from .faulty_storage import FaultyStorage

__all__ = ["FaultyStorage"]
