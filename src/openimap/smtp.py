from __future__ import annotations

import smtplib
import ssl
from email.message import EmailMessage
from email.utils import getaddresses, make_msgid
from typing import List, Mapping, Optional, Tuple, Union

from loguru import logger

from openimap.config import SMTPConfig, get_settings
from openimap.diagnostics import returns_false_on_failure
from openimap.errors import AuthError, ConfigError, SMTPError

HeadersLike = Union[str, Mapping[str, str]]


def _header_pairs(additional_headers: Optional[HeadersLike]) -> List[Tuple[str, str]]:
    if not additional_headers:
        return []
    if isinstance(additional_headers, Mapping):
        return [(str(k), str(v)) for k, v in additional_headers.items()]

    pairs: List[Tuple[str, str]] = []
    for line in additional_headers.replace("\r\n", "\n").split("\n"):
        if not line.strip():
            continue
        if line[0] in " \t" and pairs:
            name, value = pairs[-1]
            pairs[-1] = (name, f"{value} {line.strip()}")
            continue
        name, sep, value = line.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"mail: malformed header line {line!r}")
        pairs.append((name.strip(), value.strip()))
    return pairs


def _connect(cfg: SMTPConfig) -> smtplib.SMTP:
    server: smtplib.SMTP
    try:
        if cfg.use_ssl:
            ctx = ssl.create_default_context()
            server = smtplib.SMTP_SSL(cfg.host, cfg.port, timeout=cfg.timeout, context=ctx)
            server.ehlo()
        else:
            server = smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout)
            server.ehlo()
            if cfg.use_starttls:
                ctx = ssl.create_default_context()
                server.starttls(context=ctx)
                server.ehlo()

        if cfg.username:
            server.login(cfg.username, cfg.password or "")
        return server

    except smtplib.SMTPAuthenticationError as e:
        raise AuthError(f"SMTP authentication failed: {e}") from e
    except smtplib.SMTPException as e:
        raise SMTPError(f"SMTP connection failed: {e}") from e
    except OSError as e:
        raise SMTPError(f"SMTP network error: {e}") from e


@returns_false_on_failure
def mail(
    to: str,
    subject: str,
    message: str,
    additional_headers: Optional[HeadersLike] = None,
    cc: Optional[str] = None,
    bcc: Optional[str] = None,
    return_path: Optional[str] = None,
) -> bool:
    """Send a plain text message through the configured SMTP server."""
    cfg = get_settings().smtp
    if not cfg.host:
        raise ConfigError("SMTP host required (OPENIMAP_SMTP_HOST)")

    msg = EmailMessage()
    for name, value in _header_pairs(additional_headers):
        msg[name] = value
    if not msg.get("From"):
        sender = cfg.from_email or cfg.username
        if not sender:
            raise ConfigError("No From header, OPENIMAP_SMTP_FROM or OPENIMAP_SMTP_USER set")
        msg["From"] = sender
    if to:
        msg["To"] = to
    if cc:
        msg["Cc"] = cc
    msg["Subject"] = subject or ""
    if not msg.get("Message-ID"):
        msg["Message-ID"] = make_msgid()
    msg.set_content(message or "")

    recipients = [addr for _, addr in getaddresses([v for v in (to, cc, bcc) if v]) if addr]
    if not recipients:
        raise ConfigError("No recipients (to/cc/bcc are all empty)")

    envelope_from = return_path
    if not envelope_from:
        parsed = getaddresses([str(msg["From"])])
        envelope_from = parsed[0][1] if parsed else str(msg["From"])

    server = None
    try:
        server = _connect(cfg)
        logger.debug("smtp send from={} rcpt={}", envelope_from, recipients)
        server.send_message(msg, from_addr=envelope_from, to_addrs=recipients)
        return True
    except smtplib.SMTPException as e:
        raise SMTPError(f"SMTP send failed: {e}") from e
    finally:
        if server is not None:
            try:
                server.quit()
            except (smtplib.SMTPException, OSError) as e:
                logger.debug("smtp quit failed: {}", e)
