import smtplib
import ssl
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.mime.application import MIMEApplication
from typing import List, Optional, Dict, Any, Tuple
from pathlib import Path
import logging
from jinja2 import Environment, FileSystemLoader, select_autoescape
from app.core.config import settings

logger = logging.getLogger(__name__)

# (nombre de archivo, contenido, subtipo MIME) ej. ("Factura-F-0001.pdf", b"...", "pdf")
Attachment = Tuple[str, bytes, str]

TEMPLATE_DIR = Path(__file__).parent / "templates"


def format_money(value: Any) -> str:
    """Formato es-CO sin decimales: 18000 -> '18.000'"""
    try:
        amount = int(round(float(value or 0)))
    except (TypeError, ValueError):
        amount = 0
    return f"{amount:,}".replace(",", ".")


def build_message(
    sender: str,
    to_emails: List[str],
    subject: str,
    html_content: Optional[str] = None,
    text_content: Optional[str] = None,
    attachments: Optional[List[Attachment]] = None
) -> MIMEMultipart:
    """Armar el mensaje MIME: cuerpo alternativo texto/HTML más adjuntos."""
    msg = MIMEMultipart('mixed')
    msg['Subject'] = subject
    msg['From'] = sender
    msg['To'] = ', '.join(to_emails)

    body = MIMEMultipart('alternative')
    if text_content:
        body.attach(MIMEText(text_content, 'plain', 'utf-8'))
    if html_content:
        body.attach(MIMEText(html_content, 'html', 'utf-8'))
    msg.attach(body)

    for filename, content, subtype in attachments or []:
        part = MIMEApplication(content, _subtype=subtype)
        part.add_header('Content-Disposition', 'attachment', filename=filename)
        msg.attach(part)
    return msg


class EmailService:
    """
    Envío de notificaciones del restaurante por SMTP.

    Las plantillas Jinja2 viven en ``templates/`` y tienen disponible el
    filtro ``money`` para valores en pesos.
    """

    def __init__(self):
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(['html', 'xml'])
        )
        self.jinja_env.filters["money"] = format_money

    @property
    def sender(self) -> str:
        return f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>"

    @property
    def is_configured(self) -> bool:
        return bool(settings.EMAIL_USERNAME and settings.EMAIL_PASSWORD and settings.EMAIL_FROM)

    def _connect(self) -> smtplib.SMTP:
        if settings.EMAIL_USE_TLS:
            server = smtplib.SMTP(settings.EMAIL_SMTP_SERVER, settings.EMAIL_SMTP_PORT)
            server.starttls(context=ssl.create_default_context())
        else:
            server = smtplib.SMTP_SSL(settings.EMAIL_SMTP_SERVER, settings.EMAIL_SMTP_PORT)
        server.login(settings.EMAIL_USERNAME, settings.EMAIL_PASSWORD)
        return server

    def render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        return self.jinja_env.get_template(template_name).render(**context)

    def send_email(
        self,
        to_emails: List[str],
        subject: str,
        html_content: Optional[str] = None,
        text_content: Optional[str] = None,
        attachments: Optional[List[Attachment]] = None
    ) -> bool:
        """
        Enviar un correo.

        Returns:
            True si el servidor aceptó el mensaje. Un SMTP sin credenciales
            o un error de envío devuelven False; el outbox decide si reintenta.
        """
        if not self.is_configured:
            logger.warning(f"SMTP no configurado; correo '{subject}' no enviado")
            return False

        msg = build_message(self.sender, to_emails, subject, html_content, text_content, attachments)
        try:
            with self._connect() as server:
                server.sendmail(settings.EMAIL_FROM, to_emails, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Error enviando '{subject}' a {', '.join(to_emails)}: {str(e)}")
            return False

        logger.info(f"Correo '{subject}' enviado a {', '.join(to_emails)}")
        return True

    def send_template_email(
        self,
        to_emails: List[str],
        subject: str,
        template_name: str,
        context: Dict[str, Any],
        attachments: Optional[List[Attachment]] = None
    ) -> bool:
        html_content = self.render_template(template_name, context)
        return self.send_email(
            to_emails=to_emails,
            subject=subject,
            html_content=html_content,
            attachments=attachments
        )


email_service = EmailService()
