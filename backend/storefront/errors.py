"""Domain error hierarchy.

Every error carries the HTTP status and title the unified error handler in
``storefront.create_app`` renders, so services raise these directly and routes
do not translate them.
"""
from __future__ import annotations
from typing import Optional


class StorefrontError(Exception):
    status = 500
    title = 'Internal Server Error'

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.title)
        self.detail = detail or self.title


class AccessStoreError(StorefrontError):
    """Role or profile store could not be read or written."""
    status = 503
    title = 'Access Store Unavailable'


class UnknownCapability(StorefrontError):
    """A capability name outside the static table was queried."""
    status = 500
    title = 'Unknown Capability'

    def __init__(self, name: str):
        super().__init__(f'unknown capability: {name}')
        self.name = name


class NoTiersConfigured(StorefrontError):
    status = 409
    title = 'No VIP Tiers Configured'


class InvalidTierConfiguration(StorefrontError):
    status = 409
    title = 'Invalid VIP Tier Configuration'


class InvalidSettingsDocument(StorefrontError):
    status = 400
    title = 'Invalid Settings Document'


__all__ = [
    'StorefrontError', 'AccessStoreError', 'UnknownCapability', 'NoTiersConfigured',
    'InvalidTierConfiguration', 'InvalidSettingsDocument',
]
