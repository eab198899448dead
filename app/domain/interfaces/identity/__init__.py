from .identity_provider import IdentityProvider

__all__ = ["IdentityProvider"]
