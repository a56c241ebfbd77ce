"""
Shared constants and page builders for the resolver tests.

Unit tests drive the engine against scripted fakes (tests/fakes.py); the
browser integration test launches real Chromium and skips itself when no
browser is installed.
"""

import json
import os
import pathlib
import sys

# ─── Path + .env loading (must happen before any reelresolver import) ────────

_ROOT = pathlib.Path(__file__).parent.parent
sys.path.insert(0, str(_ROOT))

# Load .env so the service defaults (LOG_LEVEL, BROWSER_MODE, ...) match a local run
_env_file = _ROOT / ".env"
if _env_file.exists():
    for _line in _env_file.read_text().splitlines():
        _line = _line.strip()
        if _line and not _line.startswith("#") and "=" in _line:
            _k, _v = _line.split("=", 1)
            os.environ.setdefault(_k.strip(), _v.strip())

# ─── Constants ───────────────────────────────────────────────────────────────

TIKTOK_URL = "https://www.tiktok.com/@scout2015/video/6718335390845095173"
INSTAGRAM_URL = "https://www.instagram.com/reel/C0abcdEFGhi/"
CDN_URL = "https://v16-webapp-prime.tiktok.com/video/tos/useast2a/abc123/clip.mp4?expire=1700000000&sig=xyz"
SENTINEL_URL = "https://sf16-website-login.neutral.ttwstatic.com/obj/tiktok_web_login_static/tiktok/webapp/main/webapp-desktop/playback1.mp4"


# ─── HTML builders ───────────────────────────────────────────────────────────

def tiktok_item(play_addr: str = CDN_URL, desc: str = "dance #fyp", author: str = "scout2015", duration: int = 15) -> dict:
    return {
        "id": "6718335390845095173",
        "desc": desc,
        "author": {"uniqueId": author, "nickname": "Scout"},
        "video": {"playAddr": play_addr, "duration": duration},
    }


def script_page(script_id: str, payload: dict) -> str:
    return (
        "<html><head>"
        f'<script id="{script_id}" type="application/json">{json.dumps(payload)}</script>'
        "</head><body><div id='app'></div></body></html>"
    )


def next_data_page(item: dict) -> str:
    return script_page("__NEXT_DATA__", {"props": {"pageProps": {"itemInfo": {"itemStruct": item}}}})
