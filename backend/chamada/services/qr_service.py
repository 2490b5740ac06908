"""
Génération d'images QR code en mémoire (lien public d'enregistrement de présence).
"""

import io

import qrcode


def generate_qr_image(data: str) -> bytes:
    """Génère une image PNG du QR code encodant la chaîne donnée."""
    qr = qrcode.QRCode(version=None, box_size=10, border=4)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
