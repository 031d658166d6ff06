"""
Image and video asset handling: encoding, display references, and ownership.
"""

from .codec import (
    DisplayReferenceRegistry,
    decode_from_text,
    encode_to_text,
    parse_data_uri,
    to_data_uri,
)
from .library import AssetLibrary, ImageAsset, guess_mime_type

__all__ = [
    "AssetLibrary",
    "DisplayReferenceRegistry",
    "ImageAsset",
    "decode_from_text",
    "encode_to_text",
    "guess_mime_type",
    "parse_data_uri",
    "to_data_uri",
]
