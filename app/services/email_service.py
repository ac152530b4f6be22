# app/services/email_service.py
"""
Transactional emails.

Guests have no inbox or push subscription, so email is their only channel.
Suppliers additionally get an email when an offer is accepted and when an
admin decides on their application.

Every send is a side effect: failures are logged, never raised.
"""

import logging

from app.core import email_client
from app.core.config import get_settings
from app.core.constants import comuna_name
from app.models.offer import Offer
from app.models.profile import Profile
from app.models.water_request import WaterRequest
from app.utils.commission import format_clp
from app.utils.formatting import format_liters

logger = logging.getLogger(__name__)
settings = get_settings()

SUBJECT_PREFIX = "[nitoagua]"


def tracking_url(request: WaterRequest) -> str:
    return f"{settings.APP_BASE_URL.rstrip('/')}/track/{request.tracking_token}"


def _window_label(offer: Offer) -> str:
    start = offer.delivery_window_start.strftime("%d/%m %H:%M")
    end = offer.delivery_window_end.strftime("%H:%M")
    return f"{start} - {end}"


# (subject, body) per guest notification kind; {placeholders} filled below
GUEST_TEMPLATES: dict[str, tuple[str, str]] = {
    "confirmed": (
        "Recibimos tu solicitud de agua",
        "Hola {name},\n\n"
        "Recibimos tu solicitud de {liters} en {comuna}. Te avisaremos "
        "cuando un repartidor acepte tu pedido.\n\n"
        "Sigue tu solicitud aquí: {url}\n",
    ),
    "accepted": (
        "Tu solicitud fue aceptada",
        "Hola {name},\n\n"
        "Un repartidor aceptó tu solicitud de {liters}. "
        "Ventana de entrega: {window}.\n\n"
        "Sigue tu solicitud aquí: {url}\n",
    ),
    "delivered": (
        "¡Tu agua fue entregada!",
        "Hola {name},\n\n"
        "Tu pedido de {liters} fue marcado como entregado. "
        "Gracias por usar nitoagua.\n\n"
        "Detalle: {url}\n",
    ),
    "cancelled": (
        "Tu solicitud fue cancelada",
        "Hola {name},\n\n"
        "Tu solicitud de {liters} fue cancelada.{reason}\n\n"
        "Puedes crear una nueva solicitud cuando quieras.\n",
    ),
    "timeout": (
        "Sin ofertas para tu solicitud",
        "Hola {name},\n\n"
        "Lo sentimos, no recibimos ofertas para tu solicitud de {liters} "
        "en {comuna}. Puedes intentarlo nuevamente más tarde.\n\n"
        "Detalle: {url}\n",
    ),
}

VERIFICATION_TEMPLATES: dict[str, tuple[str, str]] = {
    "approved": (
        "¡Tu cuenta de repartidor fue aprobada!",
        "Hola {name},\n\n"
        "Tu cuenta fue verificada. Ya puedes ver solicitudes y enviar ofertas.\n",
    ),
    "rejected": (
        "Tu solicitud de repartidor fue rechazada",
        "Hola {name},\n\n"
        "Revisamos tu solicitud y no pudimos aprobarla.\n\nMotivo: {reason}\n",
    ),
    "more_info_needed": (
        "Necesitamos más información",
        "Hola {name},\n\n"
        "Para completar tu verificación necesitamos más información.\n\n{reason}\n",
    ),
}


class EmailService:
    """Builds and sends nitoagua emails through the SMTP client."""

    def _send(self, to_email: str, subject: str, body: str) -> bool:
        if not email_client.is_configured():
            logger.info("SMTP not configured; skipping email '%s' to %s", subject, to_email)
            return False
        try:
            email_client.send_email(
                to_email=to_email,
                subject=f"{SUBJECT_PREFIX} {subject}",
                text_body=body,
            )
        except Exception:
            logger.exception("Failed to send email '%s' to %s", subject, to_email)
            return False
        logger.info("Email '%s' sent to %s", subject, to_email)
        return True

    def send_request_email(
        self,
        kind: str,
        request: WaterRequest,
        to_email: str | None = None,
        offer: Offer | None = None,
    ) -> bool:
        """
        Send a request-status email to the request's contact address.

        Args:
            kind: confirmed | accepted | delivered | cancelled | timeout
            to_email: overrides request.guest_email (e.g. a profile email)
        """
        recipient = to_email or request.guest_email
        if not recipient:
            return False
        subject, body = GUEST_TEMPLATES[kind]
        reason = (
            f"\n\nMotivo: {request.cancellation_reason}"
            if request.cancellation_reason
            else ""
        )
        return self._send(
            recipient,
            subject,
            body.format(
                name=request.guest_name,
                liters=format_liters(request.amount),
                comuna=comuna_name(request.comuna_id),
                url=tracking_url(request),
                window=_window_label(offer) if offer else "por confirmar",
                reason=reason,
            ),
        )

    def send_offer_accepted_email(
        self,
        provider: Profile,
        request: WaterRequest,
        offer: Offer,
    ) -> bool:
        body = (
            f"Hola {provider.name},\n\n"
            f"¡Tu oferta fue aceptada! Solicitud de {format_liters(request.amount)} "
            f"en {comuna_name(request.comuna_id)}.\n\n"
            f"Dirección: {request.address}\n"
            f"Contacto: {request.guest_name} ({request.guest_phone})\n"
            f"Ventana de entrega: {_window_label(offer)}\n"
            f"Precio: {format_clp(offer.price)}\n\n"
            f"Detalle: {settings.APP_BASE_URL.rstrip('/')}/provider/deliveries/{offer.id}\n"
        )
        return self._send(provider.email, "¡Tu oferta fue aceptada!", body)

    def send_verification_email(
        self,
        provider: Profile,
        decision: str,
        reason: str | None = None,
    ) -> bool:
        subject, body = VERIFICATION_TEMPLATES[decision]
        return self._send(
            provider.email,
            subject,
            body.format(name=provider.name, reason=reason or ""),
        )
