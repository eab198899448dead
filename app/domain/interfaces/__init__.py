"""Service interfaces package."""
from .identity import IdentityProvider
from .recognition import DescriptorExtractor

__all__ = ["DescriptorExtractor", "IdentityProvider"]
