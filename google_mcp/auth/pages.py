"""HTML pages served to the browser by the callback listener."""

from __future__ import annotations

import html
import math
from string import Template

_SUCCESS_TEMPLATE = Template(
    """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Authentication Successful</title>
<style>
body { font-family: sans-serif; text-align: center; margin-top: 15%; color: #202124; }
h1 { color: #188038; }
</style>
</head>
<body>
<h1>Authentication Successful!</h1>
<p>You can close this window and return to the application.</p>
<p id="countdown">This window will close in $seconds seconds.</p>
<script>
setTimeout(function () { window.close(); }, $delay_ms);
</script>
</body>
</html>
"""
)

_ERROR_TEMPLATE = Template(
    """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>$title</title>
<style>
body { font-family: sans-serif; text-align: center; margin-top: 15%; color: #202124; }
h1 { color: #d93025; }
</style>
</head>
<body>
<h1>$title</h1>
<p>$message</p>
<p>You can close this window.</p>
</body>
</html>
"""
)


def render_success_page(auto_close_delay_ms: int = 3000) -> bytes:
    """Render the confirmation page, closing itself after the delay."""
    return _SUCCESS_TEMPLATE.substitute(
        seconds=math.ceil(auto_close_delay_ms / 1000),
        delay_ms=int(auto_close_delay_ms),
    ).encode("utf-8")


def render_error_page(title: str, message: str) -> bytes:
    """Render an error page. Title and message are HTML-escaped."""
    return _ERROR_TEMPLATE.substitute(
        title=html.escape(title),
        message=html.escape(message),
    ).encode("utf-8")


__all__ = ["render_success_page", "render_error_page"]
