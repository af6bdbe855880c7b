"""Minimal rich-preview document for pages with OGP metadata.

Link unfurlers read the ``og:`` meta tags; browsers follow the meta refresh to
the destination straight away.
"""

from html import escape

from scvl.models import OGP

__all__ = ["render_preview"]

PREVIEW_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<meta property="og:title" content="{title}">
<meta property="og:image" content="{image}">
<meta property="og:description" content="{description}">
<meta property="og:url" content="{url}">
<meta name="twitter:card" content="summary_large_image">
<meta http-equiv="refresh" content="0; url={url}">
<title>{title}</title>
</head>
<body>
<a href="{url}">{url}</a>
</body>
</html>
"""


def render_preview(url: str, ogp: OGP) -> str:
    return PREVIEW_TEMPLATE.format(
        url=escape(url, quote=True),
        title=escape(ogp.title, quote=True),
        image=escape(ogp.image, quote=True),
        description=escape(ogp.description, quote=True),
    )
