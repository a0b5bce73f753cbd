# paypals/utils/paynow_qr.py
# -----------------------------------------------------------------------------
# PayNow (Singapore) QR payloads, EMV QR Code format.
#
# Every data object is Tag-Length-Value: 2-digit tag, 2-digit length, value.
# Top-level objects in order:
#   00 payload format "01" | 01 initiation "11" (static) | 26 PayNow merchant info
#   52 category "0000" | 53 currency "702" (SGD) | 54 amount (optional)
#   58 "SG" | 59 merchant name | 60 "Singapore" | 62 additional data (01 = reference)
#   63 CRC16-CCITT over everything before it, including "6304"
# -----------------------------------------------------------------------------

from __future__ import annotations

import base64
import re
from decimal import Decimal
from io import BytesIO
from typing import Optional

import qrcode

from paypals.utils.money import q

PAYNOW_DOMAIN = "SG.PAYNOW"
PROXY_MOBILE = "0"
CURRENCY_SGD = "702"
MAX_NAME_LEN = 25
MAX_REFERENCE_LEN = 25

QR_WIDTH = 300
QR_BORDER = 2

RECIPIENT_RE = re.compile(r"^(\+65)?[89]\d{7}$")


def tlv(tag: str, value: str) -> str:
    if len(value) > 99:
        raise ValueError(f"TLV value for tag {tag} is too long ({len(value)})")
    return f"{tag}{len(value):02d}{value}"


def crc16_ccitt(data: str) -> int:
    crc = 0xFFFF
    for ch in data.encode("utf-8"):
        crc ^= ch << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return crc


def _strip(recipient: str) -> str:
    return re.sub(r"\s+", "", recipient or "")


def validate_recipient(recipient: str) -> bool:
    """Only Singapore mobile numbers (8 digits starting with 8 or 9) are accepted."""
    return bool(RECIPIENT_RE.match(_strip(recipient)))


def clean_recipient(recipient: str) -> str:
    cleaned = _strip(recipient)
    if cleaned.startswith("+65"):
        cleaned = cleaned[3:]
    return ("+65" + cleaned).upper()


def merchant_account_info(recipient: str, *, editable_amount: bool = False) -> str:
    return (
        tlv("00", PAYNOW_DOMAIN)
        + tlv("01", PROXY_MOBILE)
        + tlv("02", clean_recipient(recipient))
        + tlv("03", "1" if editable_amount else "0")
    )


def build_payload(
    recipient: str,
    amount: Optional[Decimal],
    merchant_name: str,
    reference: str = "",
    *,
    editable_amount: bool = False,
) -> str:
    """Returns the EMV string to be encoded in the QR image."""
    data = tlv("00", "01")
    data += tlv("01", "11")
    data += tlv("26", merchant_account_info(recipient, editable_amount=editable_amount))
    data += tlv("52", "0000")
    data += tlv("53", CURRENCY_SGD)
    if amount is not None and amount > 0:
        data += tlv("54", f"{q(amount):.2f}")
    data += tlv("58", "SG")
    data += tlv("59", (merchant_name or "PayPals User")[:MAX_NAME_LEN])
    data += tlv("60", "Singapore")
    if reference:
        data += tlv("62", tlv("01", reference[:MAX_REFERENCE_LEN]))

    data += "6304"
    return data + f"{crc16_ccitt(data):04X}"


def render_data_url(payload: str) -> str:
    """PNG data URL, roughly QR_WIDTH pixels wide with a QR_BORDER-module margin."""
    qr = qrcode.QRCode(border=QR_BORDER)
    qr.add_data(payload)
    qr.make(fit=True)
    modules = qr.modules_count + 2 * QR_BORDER
    qr.box_size = max(1, QR_WIDTH // modules)

    img = qr.make_image(fill_color="black", back_color="white")
    buf = BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
