"""
Módulo de email para Mesa360: servicio SMTP, plantillas y outbox de
notificaciones.
"""

from .service import email_service

__all__ = [
    'email_service',
]
