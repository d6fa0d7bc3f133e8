"""CMS gateways that own every persisted collection."""

from .exceptions import CmsError, CmsRequestError, UnsupportedOperationError
from .interfaces import CmsGateway
from .memory import InMemoryCmsGateway, RecordedCall
from .strapi import StrapiGateway

__all__ = [
    "CmsError",
    "CmsGateway",
    "CmsRequestError",
    "InMemoryCmsGateway",
    "RecordedCall",
    "StrapiGateway",
    "UnsupportedOperationError",
]
