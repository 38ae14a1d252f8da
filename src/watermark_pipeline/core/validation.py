"""Region and request validation."""

from typing import Optional

from .exceptions import (
    MissingCredentialError,
    UnsupportedOperationError,
    ValidationError,
)
from .models import MediaKind, ProcessingMethod, Region, RemovalOptions
from .protocols import CredentialStoreProtocol


def validate_region(region: Region, media_width: int, media_height: int) -> Region:
    """
    Validate a selection against the media bounds.

    A region that is partially outside the media is clamped to it. A region
    with a non-positive size, one lying entirely outside the media, or one
    that has no area left after clamping is rejected.

    Args:
        region: Selection in source-pixel coordinates
        media_width: Width of the media in pixels
        media_height: Height of the media in pixels

    Returns:
        The region, clamped to ``[0, media_width] x [0, media_height]``

    Raises:
        ValidationError: If the region cannot be used
    """
    if media_width <= 0 or media_height <= 0:
        raise ValidationError(
            f"Invalid media dimensions {media_width}x{media_height}"
        )

    if region.width <= 0 or region.height <= 0:
        raise ValidationError(
            f"Region must have a positive size, got {region.width}x{region.height}"
        )

    if region.x >= media_width or region.y >= media_height:
        raise ValidationError(
            f"Region ({region.x}, {region.y}) + {region.width}x{region.height} lies "
            f"outside the media ({media_width}x{media_height})"
        )

    right = min(region.right, media_width)
    bottom = min(region.bottom, media_height)
    clamped = Region(
        x=region.x, y=region.y, width=right - region.x, height=bottom - region.y
    )

    if clamped.area == 0:
        raise ValidationError("Region has no area inside the media bounds")

    return clamped


def validate_request(
    options: RemovalOptions,
    credential_store: Optional[CredentialStoreProtocol],
    media_kind: MediaKind = MediaKind.IMAGE,
) -> Optional[str]:
    """
    Check the preconditions that do not depend on the pixels.

    Returns:
        The credential to use for cloud processing, or None for local runs

    Raises:
        UnsupportedOperationError: Cloud processing of a video was requested
        MissingCredentialError: Cloud processing was requested without an API key
    """
    if options.method is ProcessingMethod.LOCAL:
        return None

    if media_kind is MediaKind.VIDEO:
        raise UnsupportedOperationError(
            "Cloud processing is not supported for videos; use the local method"
        )

    credential = credential_store.get() if credential_store is not None else ""
    if not credential:
        raise MissingCredentialError(
            "Cloud API key not configured. Please set it before using cloud processing."
        )
    return credential
