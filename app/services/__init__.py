from .template_renderer import TemplateRenderer, RenderedEmail, fill_placeholders

from .mail_transport import (
    ConsoleTransport,
    MailTransport,
    ResendTransport,
    SmtpTransport,
    build_transport,
    send_templated_email,
)

from .email_queue import enqueue, record_notification, dispatch_message, dispatch_pending

from .proxy import ProxyRouter

__all__ = [
    # Templates
    "TemplateRenderer",
    "RenderedEmail",
    "fill_placeholders",
    # Mail
    "ConsoleTransport",
    "MailTransport",
    "ResendTransport",
    "SmtpTransport",
    "build_transport",
    "send_templated_email",
    # Queue
    "enqueue",
    "record_notification",
    "dispatch_message",
    "dispatch_pending",
    # Proxy
    "ProxyRouter",
]
