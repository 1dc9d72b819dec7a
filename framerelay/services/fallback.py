"""Fallback chain controller.

Walks an ordered list of fetch strategies, one at a time, and stops at the
first usable document. When every strategy fails it synthesizes a placeholder
page instead, so acquisition always produces renderable HTML.

    TryingStrategy(0) -> Succeeded
                      -> TryingStrategy(1) -> ... -> AllFailed -> Placeholder
"""

import html as html_lib
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable

from framerelay.core.metrics import (
    content_acquisition_duration_seconds,
    content_acquisitions_total,
)
from framerelay.services.executor import FetchAttemptResult, StrategyExecutor
from framerelay.services.rewriter import rewrite
from framerelay.services.strategies import (
    SourceStrategy,
    StrategyDescriptor,
    default_strategies,
)

logger = logging.getLogger(__name__)

RETRY_MESSAGE_TYPE = "framerelay:retry"


@dataclass
class FetchOutcome:
    html: str
    source_strategy: SourceStrategy
    rewritten: bool
    strategy_id: str | None = None
    attempts: list[FetchAttemptResult] = field(default_factory=list)

    @property
    def is_placeholder(self) -> bool:
        return self.source_strategy is SourceStrategy.FALLBACK_PLACEHOLDER


class FallbackChain:
    """Sequential, short-circuiting fallback over fetch strategies."""

    def __init__(
        self,
        strategies: Iterable[StrategyDescriptor] | None = None,
        executor: StrategyExecutor | None = None,
        rewriter: Callable[[str, str], str] = rewrite,
    ):
        self.strategies = tuple(strategies) if strategies is not None else default_strategies()
        if not self.strategies:
            raise ValueError("FallbackChain needs at least one strategy")
        self.executor = executor or StrategyExecutor()
        self._rewriter = rewriter

    async def acquire(self, target_url: str) -> FetchOutcome:
        started = time.monotonic()
        attempts: list[FetchAttemptResult] = []

        for descriptor in self.strategies:
            result = await self.executor.execute(descriptor, target_url)
            attempts.append(result)
            if result.ok and result.html:
                outcome = self._succeeded(descriptor, result, target_url, attempts)
                break
        else:
            logger.info(
                f"All {len(attempts)} strategies failed for {target_url}: "
                + ", ".join(f"{a.strategy_id}={a.error}" for a in attempts)
            )
            outcome = FetchOutcome(
                html=build_placeholder(target_url, attempts),
                source_strategy=SourceStrategy.FALLBACK_PLACEHOLDER,
                rewritten=False,
                attempts=attempts,
            )

        content_acquisitions_total.labels(source=outcome.source_strategy.value).inc()
        content_acquisition_duration_seconds.observe(time.monotonic() - started)
        return outcome

    def _succeeded(
        self,
        descriptor: StrategyDescriptor,
        result: FetchAttemptResult,
        target_url: str,
        attempts: list[FetchAttemptResult],
    ) -> FetchOutcome:
        logger.info(
            f"Strategy {descriptor.id} succeeded for {target_url} "
            f"({len(result.html)} chars, attempt {len(attempts)})"
        )
        html = result.html
        rewritten = False
        try:
            html = self._rewriter(result.html, target_url)
            rewritten = True
        except Exception:
            # rewrite() is best-effort per transform; this guards custom rewriters
            logger.exception(f"Rewriting failed for {target_url}, delivering raw document")

        return FetchOutcome(
            html=html or result.html,
            source_strategy=descriptor.source,
            rewritten=rewritten,
            strategy_id=descriptor.id,
            attempts=attempts,
        )


# ---------------------------------------------------------------------------
# Placeholder document
# ---------------------------------------------------------------------------

_PLACEHOLDER_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>Page unavailable</title>
<style>
  body {{ font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
         margin: 0; min-height: 100vh; display: flex; align-items: center;
         justify-content: center; background: #f6f7f9; color: #1f2328; }}
  .relay-unavailable {{ max-width: 560px; padding: 32px; background: #fff;
         border-radius: 12px; box-shadow: 0 2px 12px rgba(0,0,0,.08); }}
  .relay-unavailable h1 {{ font-size: 20px; margin: 0 0 12px; }}
  .relay-unavailable code {{ word-break: break-all; background: #f0f1f3;
         padding: 2px 6px; border-radius: 4px; }}
  .relay-actions {{ margin-top: 20px; display: flex; gap: 12px; flex-wrap: wrap; }}
  .relay-actions a, .relay-actions button {{ font: inherit; padding: 8px 16px;
         border-radius: 6px; border: 1px solid #d0d7de; background: #fff;
         color: #0969da; cursor: pointer; text-decoration: none; }}
  details {{ margin-top: 20px; font-size: 13px; color: #59636e; }}
</style>
</head>
<body>
<main class="relay-unavailable" data-relay-placeholder="true">
  <h1>This page could not be retrieved</h1>
  <p>We tried to load <code>{url_text}</code> but every retrieval method failed.
     The site may be down, blocking automated access, or not archived.</p>
  <div class="relay-actions">
    <a href="{url_attr}" target="_blank" rel="noopener noreferrer">Open the original page</a>
    <button type="button" id="relay-retry">Try again</button>
  </div>
  <details>
    <summary>Details</summary>
    <ul>
{attempt_items}
    </ul>
  </details>
</main>
<script>
  document.getElementById("relay-retry").addEventListener("click", function () {{
    try {{
      if (window.parent && window.parent !== window) {{
        window.parent.postMessage({{ type: "{retry_type}", targetUrl: {url_json} }}, "*");
      }}
    }} catch (e) {{}}
    window.location.reload();
  }});
</script>
</body>
</html>
"""


def _js_string(value: str) -> str:
    """Quote a value for embedding in an inline script."""
    return json.dumps(value).replace("<", "\\u003c").replace(">", "\\u003e")


def build_placeholder(
    target_url: str, attempts: Iterable[FetchAttemptResult] = ()
) -> str:
    """Self-describing page shown when no strategy produced a document."""
    items = [
        f"      <li>{html_lib.escape(a.strategy_id)}: "
        f"{html_lib.escape(a.error or 'unknown error')}</li>"
        for a in attempts
    ] or ["      <li>no strategies were attempted</li>"]

    return _PLACEHOLDER_TEMPLATE.format(
        url_text=html_lib.escape(target_url),
        url_attr=html_lib.escape(target_url, quote=True),
        url_json=_js_string(target_url),
        retry_type=RETRY_MESSAGE_TYPE,
        attempt_items="\n".join(items),
    )
