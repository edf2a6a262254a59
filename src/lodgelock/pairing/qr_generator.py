"""QR code rendering for pairing codes.

Renders a ``lodgelock://pair/...`` code for display in a terminal, a
browser, or as a PNG file.
"""

import base64
import html
import io

import qrcode
from qrcode.main import QRCode

from lodgelock.errors import FormatError
from lodgelock.pairing.codec import PAIRING_PREFIX


class QrGenerator:
    """Generate QR codes for a pairing code."""

    def __init__(self, code: str):
        """Initialize QR generator.

        Args:
            code: Pairing code produced by encode_pairing_code.

        Raises:
            FormatError: If the code lacks the pairing prefix.
        """
        if not code.startswith(PAIRING_PREFIX):
            raise FormatError(f"Pairing code must start with {PAIRING_PREFIX}")
        self.code = code

    def _create_qr(self) -> QRCode:
        qr = qrcode.QRCode(
            version=None,  # Auto-size
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=4,
        )
        qr.add_data(self.code)
        qr.make(fit=True)
        return qr

    def to_terminal(self) -> str:
        """Generate ASCII art for terminal display."""
        qr = self._create_qr()
        output = io.StringIO()
        qr.print_ascii(out=output, invert=True)
        return output.getvalue()

    def to_png(self, path: str) -> None:
        """Save QR code as PNG file."""
        qr = self._create_qr()
        img = qr.make_image(fill_color="black", back_color="white")
        img.save(path)

    def to_html(self) -> str:
        """Generate an HTML page with the embedded QR code and the raw code."""
        qr = self._create_qr()
        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        img_b64 = base64.b64encode(buffer.getvalue()).decode("ascii")

        return f"""<!DOCTYPE html>
<html>
<head>
    <title>Lodgelock Pairing</title>
    <style>
        body {{
            display: flex;
            flex-direction: column;
            align-items: center;
            justify-content: center;
            height: 100vh;
            margin: 0;
            background: #f4f1ea;
            color: #222;
            font-family: system-ui, sans-serif;
        }}
        img {{ border: 10px solid white; border-radius: 10px; }}
        code {{ margin-top: 20px; color: #666; word-break: break-all; max-width: 420px; }}
    </style>
</head>
<body>
    <h1>Pair your approver</h1>
    <img src="data:image/png;base64,{img_b64}" alt="Pairing QR code">
    <code>{html.escape(self.code)}</code>
</body>
</html>
"""
