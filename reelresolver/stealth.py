"""
Fingerprint masking applied to a browsing context before navigation.

The init script runs in every page of the context before any page script, so
the usual automation probes (navigator.webdriver, empty plugin list, the
headless permissions.query quirk) read like an interactive browser.
"""

import json
import logging
from typing import Any

from .platforms import PlatformProfile

logger = logging.getLogger(__name__)

_STEALTH_TEMPLATE = """
(() => {
    Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
    try { delete window.chrome; } catch (e) {}
    Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
    Object.defineProperty(navigator, 'languages', { get: () => __LANGUAGES__ });
    if (window.navigator.permissions && window.navigator.permissions.query) {
        const originalQuery = window.navigator.permissions.query.bind(window.navigator.permissions);
        window.navigator.permissions.query = (parameters) => (
            parameters && parameters.name === 'notifications'
                ? Promise.resolve({
                    state: Notification.permission,
                    name: 'notifications',
                    onchange: null,
                    addEventListener: () => {},
                    removeEventListener: () => {},
                    dispatchEvent: () => true,
                })
                : originalQuery(parameters)
        );
    }
})();
"""


def build_stealth_script(profile: PlatformProfile) -> str:
    return _STEALTH_TEMPLATE.replace("__LANGUAGES__", json.dumps(profile.languages))


async def apply_stealth(context: Any, profile: PlatformProfile) -> bool:
    """
    Register the masking script on the context. Best-effort: returns False
    (and logs) instead of raising when the script cannot be added.
    """
    if not profile.stealth:
        return False
    try:
        await context.add_init_script(build_stealth_script(profile))
    except Exception as e:
        logger.warning(f"⚠️ [stealth] could not apply masking for {profile.platform.value}: {e}")
        return False
    logger.debug(f"[stealth] masking applied ({profile.platform.value})")
    return True
