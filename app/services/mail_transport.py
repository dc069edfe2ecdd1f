"""
Mail transports for rendered notification emails.

A transport either returns a provider message id or raises MailDeliveryError.
"""
import logging
import smtplib
import uuid
from collections import deque
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import requests
from flask import current_app

from app.errors import MailDeliveryError
from app.services.template_renderer import TemplateRenderer

logger = logging.getLogger(__name__)


class MailTransport:
    name = 'base'

    def send(self, to, subject, html, sender):
        raise NotImplementedError


class ResendTransport(MailTransport):
    """Resend transactional email HTTP API."""
    name = 'resend'

    def __init__(self, api_key, api_url='https://api.resend.com/emails', timeout=10, session=None):
        if not api_key:
            raise ValueError("RESEND_API_KEY is required for the resend transport")
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, to, subject, html, sender):
        try:
            response = self.session.post(
                self.api_url,
                json={'from': sender, 'to': [to], 'subject': subject, 'html': html},
                headers={'Authorization': f'Bearer {self.api_key}'},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise MailDeliveryError(f"Resend request failed: {e}") from e

        if response.status_code >= 400:
            raise MailDeliveryError(f"Resend rejected email ({response.status_code}): {response.text[:200]}")
        try:
            body = response.json()
        except ValueError:
            body = {}
        return body.get('id') or ''


class SmtpTransport(MailTransport):
    name = 'smtp'

    def __init__(self, server, port, username=None, password=None, use_tls=True, timeout=10):
        self.server = server
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, to, subject, html, sender):
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = sender
        msg['To'] = to
        msg.attach(MIMEText(html, 'html'))
        message_id = f"<{uuid.uuid4()}@{sender.split('@')[-1]}>"
        msg['Message-ID'] = message_id

        try:
            with smtplib.SMTP(self.server, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.sendmail(sender, to, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"SMTP delivery to {to} failed: {e}") from e
        return message_id


class ConsoleTransport(MailTransport):
    """Logs instead of sending; development and tests. Keeps the last 100 messages."""
    name = 'console'

    def __init__(self, keep=100):
        self.outbox = deque(maxlen=keep)

    def send(self, to, subject, html, sender):
        message_id = str(uuid.uuid4())
        self.outbox.append({'id': message_id, 'to': to, 'subject': subject, 'from': sender, 'html': html})
        logger.info(f"[console mail] {sender} -> {to}: {subject}")
        return message_id


def build_transport(settings) -> MailTransport:
    if settings.mail_transport == 'resend':
        return ResendTransport(settings.resend_api_key, settings.resend_api_url, settings.mail_timeout)
    if settings.mail_transport == 'smtp':
        return SmtpTransport(
            settings.smtp_server,
            settings.smtp_port,
            settings.smtp_username,
            settings.smtp_password,
            settings.smtp_use_tls,
            settings.mail_timeout,
        )
    if settings.mail_transport == 'console':
        return ConsoleTransport()
    raise ValueError(f"Unknown MAIL_TRANSPORT: {settings.mail_transport}")


def get_transport():
    return current_app.extensions['mail_transport']


def get_renderer():
    return current_app.extensions['template_renderer']


def send_templated_email(template, to, data, renderer: TemplateRenderer = None, transport: MailTransport = None):
    """Render one notification and hand it to the transport. Errors propagate."""
    renderer = renderer or get_renderer()
    transport = transport or get_transport()

    email = renderer.render(template, data)
    message_id = transport.send(to, email.subject, email.html, email.sender)
    logger.info(f"Email {getattr(template, 'value', template)} sent to {to} via {transport.name} (id={message_id})")
    return message_id
