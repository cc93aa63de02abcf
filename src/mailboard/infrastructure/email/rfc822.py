from __future__ import annotations

import re
from email import policy
from email.message import Message
from email.parser import BytesParser
from email.utils import parseaddr
from typing import Optional

from bs4 import BeautifulSoup

from mailboard.domain.entities.inbound_email import InboundEmail

BLOCK_TAGS = ["p", "div", "li", "tr", "table", "ul", "ol", "blockquote", "h1", "h2", "h3", "h4", "h5", "h6"]


def html_to_text(markup: str) -> str:
    """Visible body text, one line per block element or ``<br>``."""
    soup = BeautifulSoup(str(markup or ""), "html.parser")
    for tag in soup(["head", "title", "script", "style"]):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for tag in soup.find_all(BLOCK_TAGS):
        tag.append("\n")

    s = (soup.body or soup).get_text()
    s = s.replace("\u00a0", " ").replace("\r", "")
    s = re.sub(r"[ \t]+\n", "\n", s)
    s = re.sub(r"\n{3,}", "\n\n", s)
    return s.strip()


def _decode_part(part: Message) -> str:
    payload = part.get_payload(decode=True)
    if payload is None:
        return ""
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="replace")
    except LookupError:
        # unknown charset name
        return payload.decode("utf-8", errors="replace")


def _as_text(msg: Message) -> str:
    # Prefer text/plain; fall back to HTML converted to text
    plain: list[str] = []
    markup: list[str] = []
    for part in msg.walk():
        if part.is_multipart() or part.get_content_disposition() == "attachment":
            continue
        ctype = part.get_content_type()
        if ctype == "text/plain":
            plain.append(_decode_part(part))
        elif ctype == "text/html":
            markup.append(_decode_part(part))

    text = "\n".join(plain).strip()
    if text:
        return text
    return html_to_text("\n".join(markup))


def sender_address(msg: Message) -> Optional[str]:
    _, addr = parseaddr(str(msg.get("From") or ""))
    return addr.strip() or None


def parse_inbound_email(uid: str, rfc822_bytes: bytes) -> InboundEmail:
    em = BytesParser(policy=policy.default).parsebytes(rfc822_bytes)
    return InboundEmail(
        uid=str(uid),
        sender=sender_address(em),
        subject=str(em.get("Subject") or "").strip(),
        text=_as_text(em),
    )
