"""High-level tasks.

This module contains the tasks that can be performed with the skicp
package. Each task is implemented as a class with a ``set_model`` and an
``align`` method.
"""

from .registration import PointToPlaneICP
