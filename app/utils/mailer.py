"""
Outbound mail helpers.

Provides:
- Parsing of the ``user:password@host:port`` mail host string
- Construction of the raw message payload
- An SMTP transport built on smtplib
"""

import smtplib
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple


class MailConfigError(Exception):
    """Raised when mail delivery cannot be configured."""


class MalformedMailHostError(MailConfigError):
    """Raised when the mail host string does not parse."""

    def __init__(self, detail: str = ""):
        message = "malformed mail host"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class MailNotConfiguredError(MailConfigError):
    """Raised when a delivery is attempted without mail configuration."""


@dataclass(frozen=True)
class MailAuth:
    """Credentials for SMTP login."""

    user: str
    password: str
    host: str


@dataclass(frozen=True)
class MailConfig:
    """Resolved mail transport settings."""

    user: str
    password: str
    host: str
    port: str
    sender: str

    @property
    def server(self) -> str:
        """Server address as ``host:port``, bracketing IPv6 hosts."""
        return join_host_port(self.host, self.port)

    @property
    def auth(self) -> MailAuth:
        return MailAuth(user=self.user, password=self.password, host=self.host)


class MailTransport(Protocol):
    """Anything able to deliver a raw payload to a list of recipients."""

    def send_mail(
        self,
        server: str,
        auth: Optional[MailAuth],
        sender: str,
        recipients: Sequence[str],
        payload: bytes,
    ) -> None:
        ...


def split_host_port(hostport: str) -> Tuple[str, str]:
    """
    Split ``host:port`` or ``[host]:port`` into its parts.

    Raises:
        MalformedMailHostError: If the port is missing or an unbracketed
            host contains colons.
    """
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise MalformedMailHostError("missing ']' in address")
        host = hostport[1:end]
        rest = hostport[end + 1:]
        if not rest.startswith(":"):
            raise MalformedMailHostError("missing port in address")
        port = rest[1:]
    else:
        host, sep, port = hostport.rpartition(":")
        if not sep:
            raise MalformedMailHostError("missing port in address")
        if ":" in host:
            raise MalformedMailHostError("too many colons in address")

    if not host or not port:
        raise MalformedMailHostError("host and port are required")
    if "[" in port or "]" in port:
        raise MalformedMailHostError("unexpected bracket in port")
    return host, port


def join_host_port(host: str, port: str) -> str:
    """Inverse of split_host_port."""
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def parse_mail_host(value: str) -> MailConfig:
    """
    Parse a ``user:password@host:port`` string.

    The user is everything before the first colon, so user names may be
    e-mail addresses. The password ends at the single ``@`` that follows;
    a password containing ``@`` is therefore not representable.

    Args:
        value: Mail host string

    Returns:
        Parsed mail configuration with sender ``noreply@<host>``

    Raises:
        MalformedMailHostError: If the string does not have that shape
    """
    user, sep, rest = value.partition(":")
    if not sep:
        raise MalformedMailHostError()

    parts = rest.split("@")
    if len(parts) != 2:
        raise MalformedMailHostError()

    password, hostport = parts
    host, port = split_host_port(hostport)
    return MailConfig(
        user=user,
        password=password,
        host=host,
        port=port,
        sender=f"noreply@{host}",
    )


def build_payload(sender: str, subject: str, body: str) -> bytes:
    """Build the raw message: From and Subject headers, blank line, body."""
    return f"From: {sender}\r\nSubject: {subject}\r\n\r\n{body}\r\n".encode("utf-8")


class SMTPTransport:
    """Deliver payloads with smtplib, upgrading to TLS when offered."""

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    def send_mail(
        self,
        server: str,
        auth: Optional[MailAuth],
        sender: str,
        recipients: Sequence[str],
        payload: bytes,
    ) -> None:
        host, port = split_host_port(server)
        with smtplib.SMTP(host, int(port), timeout=self.timeout) as smtp:
            smtp.ehlo()
            if smtp.has_extn("starttls"):
                smtp.starttls()
                smtp.ehlo()
            if auth is not None and auth.user:
                smtp.login(auth.user, auth.password)
            smtp.sendmail(sender, list(recipients), payload)
