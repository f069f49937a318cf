"""BodyMap API - Body Assignment content backend.

Backend for authoring the body/color/emotion assessment content: nested
main color -> sub-feeling -> final option trees with narration audio,
and their publish lifecycle.
"""

__version__ = "0.1.0"
