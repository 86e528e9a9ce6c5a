"""Outbound email.

Delivery failures never propagate: callers get ``False`` and a warning is
logged, so a broken SMTP relay cannot roll back a sign-up or a booking.
"""
from email.message import EmailMessage
from typing import Optional, Tuple
import logging
import smtplib

from ..core.config import settings

logger = logging.getLogger(__name__)


class EmailSender:
    def send(self, to: str, subject: str, html: str) -> bool:
        raise NotImplementedError


class SmtpEmailSender(EmailSender):
    def __init__(
        self,
        host: str,
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        sender: str = settings.EMAIL_FROM,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender
        self.timeout = timeout

    def send(self, to: str, subject: str, html: str) -> bool:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content("Este email requer um cliente com suporte a HTML.")
        message.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.starttls()
                if self.user and self.password:
                    smtp.login(self.user, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"Failed to send email '{subject}' to {to}: {e}")
            return False

        logger.info(f"Email '{subject}' sent to {to}")
        return True


class LoggingEmailSender(EmailSender):
    """Used when no SMTP relay is configured."""

    def send(self, to: str, subject: str, html: str) -> bool:
        logger.info(f"SMTP not configured, email '{subject}' to {to} not delivered")
        logger.debug(html)
        return True


def get_email_sender() -> EmailSender:
    if settings.SMTP_HOST:
        return SmtpEmailSender(
            settings.SMTP_HOST,
            settings.SMTP_PORT,
            settings.SMTP_USER,
            settings.SMTP_PASSWORD,
        )
    return LoggingEmailSender()


# Templates

def _layout(title: str, body: str) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 560px; margin: 0 auto;">
      <h2 style="color: #007bff;">{title}</h2>
      {body}
      <hr />
      <p style="font-size: 12px; color: #666;">MedVision</p>
    </div>
    """


def welcome_email(name: str, role: str) -> Tuple[str, str]:
    label = "médico(a)" if role == "doctor" else "administrador(a)"
    return (
        "Bem-vindo ao MedVision",
        _layout("Bem-vindo!", f"<p>Olá {name}, sua conta de {label} foi criada.</p>"),
    )


def reset_code_email(name: str, code: str, minutes: int) -> Tuple[str, str]:
    return (
        "Recuperação de senha - MedVision",
        _layout(
            "Redefinição de Senha",
            f"""
            <p>Olá {name}, seu código de recuperação é:</p>
            <h1 style="font-size: 32px; letter-spacing: 10px;">{code}</h1>
            <p>Este código é válido por {minutes} minutos.</p>
            <p>Se você não solicitou isto, ignore este email.</p>
            """,
        ),
    )


def appointment_scheduled_email(doctor_name: str, patient_name: str, when: str, room_url: Optional[str]) -> Tuple[str, str]:
    link = f'<p><a href="{room_url}">Acessar sala da consulta</a></p>' if room_url else ""
    return (
        "Nova consulta agendada - MedVision",
        _layout(
            "Nova consulta agendada",
            f"<p>Dr(a). {doctor_name}, uma consulta com {patient_name} foi agendada para {when}.</p>{link}",
        ),
    )


def appointment_cancelled_email(doctor_name: str, patient_name: str, when: str) -> Tuple[str, str]:
    return (
        "Consulta cancelada - MedVision",
        _layout(
            "Consulta cancelada",
            f"<p>Dr(a). {doctor_name}, a consulta com {patient_name} em {when} foi cancelada.</p>",
        ),
    )
