"""YouTube transcript retrieval for video watch pages."""

from __future__ import annotations

import base64
import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import httpx
import orjson

logger = logging.getLogger(__name__)

WATCH_URL_PREFIXES = (
    "https://www.youtube.com/watch?v=",
    "https://m.youtube.com/watch?v=",
)

TRANSCRIPT_URL = "https://www.youtube.com/youtubei/v1/get_transcript"

CLIENT_CONTEXT = {"client": {"clientName": "WEB", "clientVersion": "2.20991231.01.00"}}

CAPTION_LANGUAGE_CODES: Dict[str, str] = {
    "en": "en",
    "de": "de",
    "es": "es",
    "fr": "fr",
    "it": "it",
    "pt_br": "pt-BR",
    "vi": "vi",
    "ru": "ru",
    "ar": "ar",
    "hi": "hi",
    "bn": "bn",
    "zh_cn": "zh-CN",
    "zh_tw": "zh-TW",
    "ja": "ja",
    "ko": "ko",
    "zz": "en",
}

UNRANKED_LANGUAGE = 9999
AUTO_CAPTION_PENALTY = 0.5

_CAPTIONS_CONFIG = re.compile(r'"captions":(.*?),"videoDetails":', re.DOTALL)


def is_video_watch_url(url: str) -> bool:
    return url.startswith(WATCH_URL_PREFIXES)


def preferred_caption_languages(language_code: str) -> List[str]:
    return [CAPTION_LANGUAGE_CODES.get(language_code, "en"), "en"]


def rank_caption_track(track: Dict[str, Any], preferred: List[str]) -> float:
    """Lower is better: language preference first, manual before auto (``asr``)."""
    language = track.get("languageCode")
    rank: float = preferred.index(language) if language in preferred else UNRANKED_LANGUAGE
    if track.get("kind") == "asr":
        rank += AUTO_CAPTION_PENALTY
    return rank


def sort_caption_tracks(
    tracks: List[Dict[str, Any]], language_code: str
) -> List[Dict[str, Any]]:
    preferred = preferred_caption_languages(language_code)
    return sorted(tracks, key=lambda track: rank_caption_track(track, preferred))


def _encode_varint(value: int) -> bytes:
    out = bytearray()
    while True:
        bits = value & 0x7F
        value >>= 7
        if value:
            out.append(bits | 0x80)
        else:
            out.append(bits)
            return bytes(out)


def encode_video_metadata(param1: str, param2: str) -> str:
    """Base64 of a two-string-field protobuf message (fields 1 and 2)."""
    message = bytearray()
    for field_number, value in ((1, param1), (2, param2)):
        data = value.encode("utf-8")
        message += _encode_varint((field_number << 3) | 2)
        message += _encode_varint(len(data))
        message += data
    return base64.b64encode(bytes(message)).decode("ascii")


def video_id_from_url(url: str) -> Optional[str]:
    values = parse_qs(urlparse(url).query).get("v")
    return values[0] if values else None


def extract_caption_tracks(watch_page: str) -> List[Dict[str, Any]]:
    match = _CAPTIONS_CONFIG.search(watch_page)
    if not match:
        logger.info("No captions found.")
        return []

    captions_config = orjson.loads(match.group(1))
    tracks = (captions_config.get("playerCaptionsTracklistRenderer") or {}).get(
        "captionTracks"
    )
    if not tracks:
        logger.info("No captionTracks found.")
        return []
    return tracks


def transcript_text(transcript: Dict[str, Any]) -> str:
    try:
        segments = transcript["actions"][0]["updateEngagementPanelAction"]["content"][
            "transcriptRenderer"
        ]["content"]["transcriptSearchPanelRenderer"]["body"][
            "transcriptSegmentListRenderer"
        ]["initialSegments"]
    except (KeyError, IndexError, TypeError):
        return ""

    texts = []
    for segment in segments:
        runs = (
            (segment.get("transcriptSegmentRenderer") or {}).get("snippet") or {}
        ).get("runs") or []
        if runs and runs[0].get("text"):
            texts.append(runs[0]["text"])
    return " ".join(texts)


class YouTubeCaptionFetcher:
    """Retrieves the transcript of a YouTube video as plain text."""

    def __init__(
        self,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = httpx.Timeout(timeout)
        self._transport = transport

    def supports(self, url: str) -> bool:
        return is_video_watch_url(url)

    async def fetch(self, video_url: str, language_code: str) -> str:
        """Return the transcript for ``video_url`` or ``""`` when none exists."""
        video_id = video_id_from_url(video_url)
        if not video_id:
            return ""

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport, follow_redirects=True
        ) as client:
            video_response = await client.get(video_url)
            video_response.raise_for_status()

            tracks = extract_caption_tracks(video_response.text)
            if not tracks:
                return ""

            track = sort_caption_tracks(tracks, language_code)[0]
            logger.debug(
                f"Using caption track {track.get('languageCode')} ({track.get('kind') or 'manual'})"
            )
            payload = {
                "context": CLIENT_CONTEXT,
                "params": encode_video_metadata(
                    video_id,
                    encode_video_metadata(
                        track.get("kind") or "", track.get("languageCode", "")
                    ),
                ),
            }
            captions_response = await client.post(TRANSCRIPT_URL, json=payload)
            captions_response.raise_for_status()

        return transcript_text(captions_response.json())
