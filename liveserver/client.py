"""Browser side of live reload: the client script and its injection into HTML."""

import re

SCRIPT_PATH = "/__live/script.js"
EVENTS_PATH = "/__live/events"

SCRIPT_TAG = f'<script src="{SCRIPT_PATH}"></script>'.encode()

CLIENT_JS = """
(function(){
  if (window.__LIVE_SERVER__) return;
  window.__LIVE_SERVER__ = true;
  if (!window.EventSource) {
    console.warn('[live-server] EventSource unavailable, live reload disabled');
    return;
  }
  var es = new EventSource('%(events)s');
  es.addEventListener('reload', function(){ location.reload(); });
  es.addEventListener('css', function(e){
    var changed = '';
    try { changed = JSON.parse(e.data).path || ''; } catch (err) {}
    var links = document.querySelectorAll('link[rel="stylesheet"]');
    var swapped = 0;
    for (var i = 0; i < links.length; i++) {
      var url = new URL(links[i].href, location.href);
      if (!changed || url.pathname.replace(/^\\/+/, '') === changed) {
        url.searchParams.set('__live', Date.now());
        links[i].href = url.toString();
        swapped++;
      }
    }
    if (!swapped) location.reload();
  });
  es.onopen = function(){ console.log('[live-server] connected'); };
  es.onerror = function(e){ console.warn('[live-server] event stream error', e); };
})();
""" % {"events": EVENTS_PATH}

_BODY_CLOSE = re.compile(rb"</body\s*>", re.IGNORECASE)


def inject_script(html: bytes) -> bytes:
    """Insert the client script tag right before ``</body>``, or append it."""
    match = _BODY_CLOSE.search(html)
    if match is None:
        return html + SCRIPT_TAG
    return html[:match.start()] + SCRIPT_TAG + html[match.start():]
