"""
Commune / city codes for the Lioren receptor block.

Lioren expects its own numeric commune and city codes. Until a lookup
against Lioren's catalogue exists, every receptor is sent with the
placeholder pair below.
"""
from typing import Optional, Protocol

PLACEHOLDER_COMUNA = 95
PLACEHOLDER_CIUDAD = 76


class CommuneResolver(Protocol):
    def resolve(self, city: Optional[str] = None, address: Optional[str] = None) -> tuple[int, int]:
        """Return (comuna, ciudad) codes."""
        ...


class PlaceholderCommuneResolver:
    def resolve(self, city: Optional[str] = None, address: Optional[str] = None) -> tuple[int, int]:
        return PLACEHOLDER_COMUNA, PLACEHOLDER_CIUDAD
