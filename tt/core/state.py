import json
from tt.common.logger import log
from tt.common.setup import PATHS
from tt.core.errors import MalformedSnapshot
from tt.core.snapshot import TimerSnapshot
from tt.util.misc import now_iso

# Last confirmed snapshot, kept so the display has something to show before the first refresh comes back.
CACHE_PATH = PATHS.current / "timer.json"

# Writes the given snapshot to the cache file. None means the server has no timer, so the cache is dropped.
def save_cached_snapshot(snapshot):
    if snapshot is None:
        clear_cached_snapshot()
        return
    cached = {
        "saved_at": now_iso(),
        "timer": snapshot.to_payload(),
    }
    try:
        with open(CACHE_PATH, "w", encoding="utf-8") as f:
            json.dump(cached, f, indent=2)
    except OSError:
        log.warning(f"Could not write cached timer to '{CACHE_PATH}'", exc_info=True)
        return
    log.debug(f"Cached timer {snapshot.id} to '{CACHE_PATH}'")

# Loads the cached snapshot. Missing or unreadable caches just mean "no timer known yet".
def load_cached_snapshot():
    if not CACHE_PATH.exists():
        return None
    try:
        with open(CACHE_PATH, "r", encoding="utf-8") as f:
            cached = json.load(f)
        snapshot = TimerSnapshot.from_payload(cached.get("timer"))
    except (json.JSONDecodeError, OSError, AttributeError, MalformedSnapshot):
        log.warning(f"Ignoring unreadable cached timer at '{CACHE_PATH}'", exc_info=True)
        return None
    log.info(f"Loaded cached timer {None if snapshot is None else snapshot.id} saved at {cached.get('saved_at')}")
    return snapshot

def clear_cached_snapshot():
    try:
        CACHE_PATH.unlink()
    except FileNotFoundError:
        return
    except OSError:
        log.warning(f"Could not remove cached timer at '{CACHE_PATH}'", exc_info=True)
        return
    log.debug(f"Removed cached timer at '{CACHE_PATH}'")
