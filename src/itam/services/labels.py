"""Printable asset tag labels."""

from io import BytesIO

import barcode
from barcode.writer import SVGWriter


def tag_label_svg(asset_tag: str) -> bytes:
    """Render ``asset_tag`` as a Code128 barcode SVG."""
    code128 = barcode.get_barcode_class("code128")
    rv = BytesIO()
    code = code128(asset_tag, writer=SVGWriter())
    code.write(
        rv,
        options={
            "module_width": 0.4,
            "module_height": 15,
            "font_size": 10,
            "text_distance": 5,
            "quiet_zone": 6.5,
        },
    )
    return rv.getvalue()
