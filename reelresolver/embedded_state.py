"""
Embedded page-state parsing.

Both platforms inline a JSON blob with the data the client app renders from.
The blobs and their field layouts change upstream without notice, so the
lookups live in two small tables below:

  MARKERS      which <script> holds the payload and where the item lives
  FIELD_PATHS  where the media URL, title, author and duration sit in the item

Extending support for a new layout means adding a row, not code. Any failure
(no marker, bad JSON, missing item) returns None so the pipeline can fall
through to the next strategy. An item whose address is missing or a sentinel
still yields its metadata with an empty media_url, for the network result to
fill in.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from bs4 import BeautifulSoup

from .media import is_usable_media_url
from .models import ExtractionCandidate, Platform, StrategyKind

logger = logging.getLogger(__name__)

# Path step meaning "first value of this dict"
FIRST_VALUE = object()

PathStep = Union[str, int, object]
Path = Tuple[PathStep, ...]


@dataclass(frozen=True)
class StateMarker:
    """Locates one embedded payload and the video item inside it."""
    name: str
    item_path: Path
    script_id: Optional[str] = None
    # For payloads without an id: pick the JSON script whose text contains this
    text_hint: Optional[str] = None
    # Walk the payload for the first dict stored under this key before item_path
    search_key: Optional[str] = None


@dataclass(frozen=True)
class FieldPaths:
    media: Tuple[Path, ...]
    title: Tuple[Path, ...]
    author: Tuple[Path, ...]
    duration: Tuple[Path, ...]


MARKERS: Dict[Platform, Tuple[StateMarker, ...]] = {
    Platform.TIKTOK: (
        StateMarker(
            name="__UNIVERSAL_DATA_FOR_REHYDRATION__",
            script_id="__UNIVERSAL_DATA_FOR_REHYDRATION__",
            item_path=("__DEFAULT_SCOPE__", "webapp.video-detail", "itemInfo", "itemStruct"),
        ),
        StateMarker(
            name="__NEXT_DATA__",
            script_id="__NEXT_DATA__",
            item_path=("props", "pageProps", "itemInfo", "itemStruct"),
        ),
        StateMarker(
            name="SIGI_STATE",
            script_id="SIGI_STATE",
            item_path=("ItemModule", FIRST_VALUE),
        ),
    ),
    Platform.INSTAGRAM: (
        StateMarker(
            name="xdt_shortcode_web_info",
            text_hint="xdt_api__v1__media__shortcode__web_info",
            search_key="xdt_api__v1__media__shortcode__web_info",
            item_path=("items", 0),
        ),
    ),
}

FIELD_PATHS: Dict[Platform, FieldPaths] = {
    Platform.TIKTOK: FieldPaths(
        media=(
            ("video", "downloadAddr"),
            ("video", "playAddr"),
            ("video", "play_addr", "url_list", 0),
            ("video", "bitrateInfo", 0, "PlayAddr", "UrlList", 0),
        ),
        title=(("desc",),),
        author=(("author", "uniqueId"), ("author", "nickname")),
        duration=(("video", "duration"),),
    ),
    Platform.INSTAGRAM: FieldPaths(
        media=(("video_versions", 0, "url"),),
        title=(("caption", "text"),),
        author=(("user", "username"), ("owner", "username")),
        duration=(("video_duration",),),
    ),
}


def walk(data: Any, path: Sequence[PathStep]) -> Any:
    """Follow path through nested dicts/lists; None when any step is missing."""
    node = data
    for step in path:
        if step is FIRST_VALUE:
            if not isinstance(node, dict) or not node:
                return None
            node = next(iter(node.values()))
        elif isinstance(step, int):
            if not isinstance(node, list) or len(node) <= step:
                return None
            node = node[step]
        else:
            if not isinstance(node, dict) or step not in node:
                return None
            node = node[step]
    return node


def find_key(data: Any, key: str, max_depth: int = 12) -> Any:
    """Depth-first search for the first value stored under key."""
    stack = [(data, 0)]
    while stack:
        node, depth = stack.pop()
        if depth > max_depth:
            continue
        if isinstance(node, dict):
            if key in node:
                return node[key]
            stack.extend((v, depth + 1) for v in reversed(list(node.values())))
        elif isinstance(node, list):
            stack.extend((v, depth + 1) for v in reversed(node))
    return None


def _first(item: Any, paths: Sequence[Path]) -> Any:
    for path in paths:
        value = walk(item, path)
        if isinstance(value, list):
            value = value[0] if value else None
        if value not in (None, ""):
            return value
    return None


def _find_script_text(soup: BeautifulSoup, marker: StateMarker) -> Optional[str]:
    if marker.script_id:
        tag = soup.find("script", id=marker.script_id)
        return tag.string if tag is not None else None
    if marker.text_hint:
        for tag in soup.find_all("script", attrs={"type": "application/json"}):
            text = tag.string or ""
            if marker.text_hint in text:
                return text
    return None


def _locate_item(payload: Any, marker: StateMarker) -> Any:
    root = payload
    if marker.search_key:
        root = find_key(payload, marker.search_key)
        if root is None:
            return None
    return walk(root, marker.item_path)


def item_to_candidate(item: Dict[str, Any], platform: Platform) -> Optional[ExtractionCandidate]:
    """
    Read the field-path table for platform out of a video item. media_url is
    "" when the item has no usable address; None when it has nothing at all.
    """
    paths = FIELD_PATHS[platform]
    media_url = _first(item, paths.media)
    if not isinstance(media_url, str) or not is_usable_media_url(media_url):
        media_url = ""

    title = _first(item, paths.title)
    author = _first(item, paths.author)
    duration = _first(item, paths.duration)
    if not (media_url or title or author):
        return None
    try:
        duration_seconds = float(duration) if duration is not None else None
    except (TypeError, ValueError):
        duration_seconds = None

    return ExtractionCandidate(
        media_url=media_url,
        title=str(title) if title else None,
        author=str(author) if author else None,
        description=str(title) if title else None,
        duration_seconds=duration_seconds or None,
        source_strategy=StrategyKind.EMBEDDED_STATE,
    )


def parse_embedded_state(html: str, platform: Platform) -> Optional[ExtractionCandidate]:
    """
    Try each known payload marker for platform; first item with a usable
    address wins. Failing that, the first metadata-only item is returned.
    """
    if not html:
        return None
    markers = MARKERS.get(platform, ())
    soup = BeautifulSoup(html, "html.parser")
    metadata_only = None

    for marker in markers:
        raw = _find_script_text(soup, marker)
        if not raw:
            continue
        try:
            payload = json.loads(raw)
        except ValueError as e:
            logger.debug(f"[embedded-state] {marker.name}: invalid JSON ({e})")
            continue

        item = _locate_item(payload, marker)
        if not isinstance(item, dict):
            logger.debug(f"[embedded-state] {marker.name}: no video item at expected path")
            continue

        candidate = item_to_candidate(item, platform)
        if candidate is None:
            logger.debug(f"[embedded-state] {marker.name}: empty video item")
            continue
        if not candidate.media_url:
            logger.debug(f"[embedded-state] {marker.name}: metadata only, no usable media address")
            metadata_only = metadata_only or candidate
            continue

        logger.info(f"[embedded-state] ✅ media URL from {marker.name}: {candidate.media_url[:80]}...")
        return candidate

    return metadata_only
