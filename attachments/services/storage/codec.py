"""
Attachment URL token codec.

A token locates an attachment through its owner: the owning model label,
the field holding the file, the owner's primary key, the access type and
the original file name. The five fields are joined with ``|``, base64
encoded, and every ``/`` is replaced with ``_`` so the token can be used
as a single URL path segment.

Wire format (stable, links in the wild depend on it)::

    base64("<parent_class>|<field_name>|<parent_id>|<access_type>|<original_filename>")

Decoding treats its input as untrusted: anything that is not a well-formed
token raises InvalidTokenError.
"""

import base64
import binascii
from dataclasses import dataclass
from typing import List

from .errors import InvalidTokenError

SEPARATOR = '|'
FIELD_COUNT = 5


class AccessType:
    """Known access types carried in a token."""
    GET = 'get'
    DOWNLOAD = 'download'


def encode_attachment_token(
    parent_class: str,
    field_name: str,
    parent_id: int,
    access_type: str,
    original_filename: str,
) -> str:
    """
    Encode the locating fields of an attachment into a URL-safe token.

    The first four fields must not contain the ``|`` separator. The
    original file name may contain anything, decoding splits at most
    four times.

    Raises:
        ValueError: If a locating field contains the separator
    """
    fields = [parent_class, field_name, str(parent_id), access_type]
    for value in fields:
        if SEPARATOR in value:
            raise ValueError(f"Token field must not contain '{SEPARATOR}': {value!r}")

    joined = SEPARATOR.join(fields + [original_filename or ''])
    encoded = base64.b64encode(joined.encode('utf-8')).decode('ascii')
    return encoded.replace('/', '_')


def decode_attachment_token(token: str) -> List[str]:
    """
    Decode a token produced by encode_attachment_token.

    Returns:
        [parent_class, field_name, parent_id, access_type, original_filename],
        all strings

    Raises:
        InvalidTokenError: If the token is not valid base64, not UTF-8,
            empty, or has fewer than five fields
    """
    if not isinstance(token, str) or not token:
        raise InvalidTokenError('Input string is not correct attachment encoded parameters')

    data = token.replace('_', '/')
    # Tolerate tokens whose padding was stripped along the way
    data += '=' * (-len(data) % 4)

    try:
        decoded = base64.b64decode(data.encode('ascii'), validate=True).decode('utf-8')
    except (binascii.Error, UnicodeError) as e:
        raise InvalidTokenError('Input string is not correct attachment encoded parameters') from e

    parts = decoded.split(SEPARATOR, FIELD_COUNT - 1)
    if not decoded or len(parts) < FIELD_COUNT:
        raise InvalidTokenError('Input string is not correct attachment encoded parameters')

    return parts


@dataclass(frozen=True)
class AttachmentDescriptor:
    """Typed view of the fields carried by an attachment token."""

    parent_class: str
    field_name: str
    parent_id: int
    access_type: str
    original_filename: str

    def to_token(self) -> str:
        return encode_attachment_token(
            self.parent_class,
            self.field_name,
            self.parent_id,
            self.access_type,
            self.original_filename,
        )

    @classmethod
    def from_token(cls, token: str) -> 'AttachmentDescriptor':
        """
        Parse a token into a descriptor.

        Raises:
            InvalidTokenError: If the token is malformed or the parent id
                is not a non-negative integer
        """
        parent_class, field_name, parent_id, access_type, original_filename = (
            decode_attachment_token(token)
        )
        if not (parent_id.isascii() and parent_id.isdigit()):
            raise InvalidTokenError(f"Invalid parent id in attachment token: {parent_id!r}")

        return cls(
            parent_class=parent_class,
            field_name=field_name,
            parent_id=int(parent_id),
            access_type=access_type,
            original_filename=original_filename,
        )
