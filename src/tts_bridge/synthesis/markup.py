"""
SSML Markup Builder.

Wraps request text into a single-voice SSML document:

    <speak version="1.0" xml:lang="en-US"><voice name="en-US-JennyNeural">Hello</voice></speak>

Text is XML-escaped by default so that "<", ">" and "&" in user input
cannot break the document or inject tags. Setting ``markup.escape_text``
to false interpolates the text verbatim, for callers that send their own
inline SSML fragments.
"""
from __future__ import annotations

from typing import Optional
from xml.sax.saxutils import escape, quoteattr

from tts_bridge.core.config import Defaults
from tts_bridge.core.errors import NO_TEXT_MESSAGE, InvalidInputError


def build_ssml(
    text: Optional[str],
    voice: str,
    language: str = Defaults.MARKUP_LANGUAGE,
    escape_text: bool = True,
) -> str:
    """
    Build the SSML document for one synthesis request.

    Raises:
        InvalidInputError: If text is missing, empty or whitespace-only.
    """
    if text is None or not text.strip():
        raise InvalidInputError(NO_TEXT_MESSAGE)

    body = escape(text) if escape_text else text
    return (
        f'<speak version="1.0" xml:lang={quoteattr(language)}>'
        f"<voice name={quoteattr(voice)}>{body}</voice>"
        "</speak>"
    )
