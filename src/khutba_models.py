"""Data model shared by the khutba client, the sample table and notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

API_BASE_URL = 'https://islamicaudio.techrealm.online'


class ErrorKind(str, Enum):
    """Why a fallback sermon was returned."""

    NONE = 'none'
    NETWORK = 'network'
    SERVER = 'server'
    AUTH = 'auth'
    OTHER = 'other'


def resolve_audio_url(audio_url: str | None, base_url: str = API_BASE_URL) -> str:
    """Return an absolute URL for ``audio_url``.

    Absolute URLs pass through unchanged; relative paths are joined onto
    ``base_url`` with exactly one slash between them.
    """
    if not audio_url:
        return ''
    if audio_url.startswith(('http://', 'https://')):
        return audio_url
    path = audio_url if audio_url.startswith('/') else f"/{audio_url}"
    return f"{base_url.rstrip('/')}{path}"


@dataclass(frozen=True)
class Sermon:
    """A sermon returned to callers, generated or from the sample table."""

    audio_url: str
    text: str
    title: str
    full_audio_url: str = ''
    purpose: str = ''
    error_kind: ErrorKind = ErrorKind.NONE

    @classmethod
    def from_api(cls, data: dict[str, Any], purpose: str,
                 base_url: str = API_BASE_URL) -> Sermon:
        """Build a sermon from a ``/generate-khutab`` response body."""
        audio_url = data.get('audio_url') or ''
        if not audio_url:
            logger.error("No audio_url found in API response")
        full_audio_url = resolve_audio_url(audio_url, base_url)
        if full_audio_url:
            logger.debug(f"Full audio URL constructed: {full_audio_url}")
        return cls(
            audio_url=audio_url,
            text=data.get('text') or '',
            title=data.get('title') or '',
            full_audio_url=full_audio_url,
            purpose=purpose,
        )

    @property
    def is_fallback(self) -> bool:
        return self.error_kind is not ErrorKind.NONE

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data['error_kind'] = self.error_kind.value
        return data
