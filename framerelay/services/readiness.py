"""Client-side readiness overlay.

``inject`` appends a self-contained style/markup/script block before the
closing ``</body>``. In the browser it shows a loading overlay and polls for
signs that the page has actually rendered (enough height, media or structural
elements, a minimum elapsed time). The overlay is removed on readiness, on the
window ``load`` event, on any script error, and unconditionally once the hard
ceiling elapses, whichever comes first.

The script runs entirely in the delivered document; the server never waits
on it.
"""

import re

from framerelay.config import settings

READINESS_MARKER = "data-relay-readiness"
OVERLAY_ID = "relay-readiness-overlay"

MAX_HARD_CEILING_MS = 20000
MIN_HARD_CEILING_MS = 1000

_BODY_CLOSE_RE = re.compile(r"</body\s*>", re.IGNORECASE)

_READINESS_BLOCK = """
<style {marker}="style">
  #{overlay_id} {{ position: fixed; inset: 0; z-index: 2147483647; display: flex;
    flex-direction: column; align-items: center; justify-content: center; gap: 16px;
    background: rgba(255, 255, 255, 0.96); transition: opacity 0.3s ease;
    font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif; }}
  #{overlay_id}.relay-hidden {{ opacity: 0; pointer-events: none; }}
  #{overlay_id} .relay-spinner {{ width: 36px; height: 36px; border-radius: 50%;
    border: 3px solid #d0d7de; border-top-color: #0969da;
    animation: relay-spin 0.8s linear infinite; }}
  #{overlay_id} .relay-progress {{ width: 180px; height: 4px; background: #e6e8eb;
    border-radius: 2px; overflow: hidden; }}
  #{overlay_id} .relay-progress-bar {{ width: 0; height: 100%; background: #0969da;
    transition: width 0.4s ease; }}
  @keyframes relay-spin {{ to {{ transform: rotate(360deg); }} }}
</style>
<div id="{overlay_id}" {marker}="overlay" role="progressbar" aria-label="Loading page">
  <div class="relay-spinner"></div>
  <div class="relay-progress"><div class="relay-progress-bar"></div></div>
</div>
<script {marker}="script">
(function () {{
  var POLL_MS = {poll_ms}, CEILING_MS = {ceiling_ms};
  var MIN_ELAPSED_MS = {min_elapsed_ms}, MIN_HEIGHT = {min_height};
  var started = Date.now(), hidden = false, poller = null, ceiling = null;
  var overlay = document.getElementById("{overlay_id}");

  function hide() {{
    if (hidden) return;
    hidden = true;
    if (poller) clearInterval(poller);
    if (ceiling) clearTimeout(ceiling);
    if (!overlay) return;
    overlay.className += " relay-hidden";
    setTimeout(function () {{
      if (overlay && overlay.parentNode) overlay.parentNode.removeChild(overlay);
    }}, 300);
  }}

  ceiling = setTimeout(hide, CEILING_MS);
  window.addEventListener("load", hide);
  window.addEventListener("error", hide);

  function progress(elapsed) {{
    var bar = overlay && overlay.querySelector(".relay-progress-bar");
    if (bar) bar.style.width = Math.min(95, Math.round(elapsed / CEILING_MS * 100)) + "%";
  }}

  function ready(elapsed) {{
    if (elapsed < MIN_ELAPSED_MS) return false;
    var body = document.body, doc = document.documentElement;
    var height = Math.max(body ? body.scrollHeight : 0, doc ? doc.scrollHeight : 0);
    var media = document.querySelectorAll("img, picture, video, svg, canvas, iframe").length;
    var structure = document.querySelectorAll("main, article, section, header, nav, h1, h2, p").length;
    return height >= MIN_HEIGHT || media > 0 || structure >= 3;
  }}

  poller = setInterval(function () {{
    try {{
      var elapsed = Date.now() - started;
      progress(elapsed);
      if (ready(elapsed)) hide();
    }} catch (e) {{
      hide();
    }}
  }}, POLL_MS);
}})();
</script>
"""


def clamp_ceiling(ceiling_ms: int) -> int:
    return max(MIN_HARD_CEILING_MS, min(MAX_HARD_CEILING_MS, int(ceiling_ms)))


def build_readiness_block(
    poll_interval_ms: int | None = None,
    hard_ceiling_ms: int | None = None,
    min_elapsed_ms: int | None = None,
    min_height: int | None = None,
) -> str:
    ceiling = clamp_ceiling(
        hard_ceiling_ms if hard_ceiling_ms is not None else settings.READINESS_HARD_CEILING_MS
    )
    poll = poll_interval_ms if poll_interval_ms is not None else settings.READINESS_POLL_INTERVAL_MS
    elapsed = min_elapsed_ms if min_elapsed_ms is not None else settings.READINESS_MIN_ELAPSED_MS

    return _READINESS_BLOCK.format(
        marker=READINESS_MARKER,
        overlay_id=OVERLAY_ID,
        poll_ms=max(50, min(int(poll), ceiling)),
        ceiling_ms=ceiling,
        min_elapsed_ms=max(0, min(int(elapsed), ceiling)),
        min_height=int(min_height if min_height is not None else settings.READINESS_MIN_HEIGHT),
    )


def inject(html: str, **options) -> str:
    """Append the readiness overlay before the last </body> (or at the end)."""
    if READINESS_MARKER in html:
        return html

    block = build_readiness_block(**options)
    closing = None
    for closing in _BODY_CLOSE_RE.finditer(html):
        pass
    if closing is None:
        return html + block
    return html[: closing.start()] + block + html[closing.start():]
