"""
Programme dependency constraint engine.

Maintains the precedence graph between tasks of a construction programme,
keeps it acyclic, and checks concrete schedules against the declared
FS/SS/FF/SF constraints.
"""

__version__ = "0.1.0"
