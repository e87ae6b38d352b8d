"""Performance analysis and scoring for Laravel applications.

The scoring engine in `optimizer_pro.services.scoring` is pure and has no
dependencies on collection; everything else gathers its inputs.
"""

__version__ = "0.1.0"
