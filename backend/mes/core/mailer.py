"""FORGE MES — Plain SMTP message building and delivery."""
import smtplib
from email.message import EmailMessage
from email.utils import formatdate, make_msgid


def build_message(*, from_email: str, to_emails: list[str], subject: str, body_text: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = from_email
    msg["To"] = ", ".join(to_emails)
    msg["Subject"] = subject
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid(domain=None)
    msg.set_content(body_text or " ")
    return msg


def send_smtp(
    *,
    host: str,
    port: int,
    use_tls: bool,
    username: str,
    password: str,
    msg: EmailMessage,
) -> None:
    tos = [x.strip() for x in (msg.get("To") or "").split(",") if x.strip()]
    with smtplib.SMTP(host, port, timeout=30) as s:
        s.ehlo()
        if use_tls:
            s.starttls()
            s.ehlo()
        if username:
            s.login(username, password)
        s.send_message(msg, from_addr=msg.get("From"), to_addrs=tos)
