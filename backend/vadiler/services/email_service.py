"""
Email Service
Transactional emails: OTP codes, order confirmation, bank transfer
instructions, status updates and payment reminders.

HTML bodies are rendered with jinja2 from the templates below and sent over
SMTP (implicit TLS on port 465, STARTTLS otherwise). Send failures never
raise; callers get an EmailSendResult (or a bool) and decide whether the
failure matters.

Author: Vadiler
Date: 2025-11-04
"""
import logging
import smtplib
import socket
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from jinja2 import Environment, DictLoader, select_autoescape

from vadiler.core.config import settings
from vadiler.domain.order import Order
from vadiler.services.formatting import format_try

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 20

BANK_NAME = "Garanti Bankası"
BANK_IBAN = "TR12 0006 2000 7520 0006 2942 76"
BANK_ACCOUNT_HOLDER = "STR GRUP A.Ş"

OTP_PURPOSES = {
    "register": {"label": "Kayıt", "title": "Kayıt işleminizi tamamlayın", "emoji": "🌸"},
    "login": {"label": "Giriş", "title": "Hesabınıza giriş yapın", "emoji": "🔐"},
    "password-reset": {"label": "Şifre Sıfırlama", "title": "Şifrenizi sıfırlayın", "emoji": "🔑"},
}

STATUS_COPY = {
    "confirmed": {
        "title": "Siparişiniz Onaylandı",
        "message": "Siparişiniz onaylandı. Teslimat günü belirlenen saatlerde durumunuz otomatik güncellenecektir.",
        "button": "Siparişimi Takip Et",
        "color": "#10b981",
    },
    "processing": {
        "title": "Siparişiniz Hazırlanıyor",
        "message": "Siparişiniz hazırlanıyor. Çok yakında yola çıkacak.",
        "button": "Sipariş Durumunu Gör",
        "color": "#10b981",
    },
    "shipped": {
        "title": "Siparişiniz Yola Çıktı",
        "message": "Siparişiniz yola çıktı. Yakında teslim edilecek.",
        "button": "Teslimat Durumunu Takip Et",
        "color": "#10b981",
    },
    "delivered": {
        "title": "Siparişiniz Teslim Edildi",
        "message": "Siparişiniz teslim edildi. Bizi tercih ettiğiniz için teşekkür ederiz.",
        "button": "Siparişi Görüntüle",
        "color": "#10b981",
    },
    "cancelled": {
        "title": "Siparişiniz İptal Edildi",
        "message": ("Siparişiniz iptal edildi. Ödeme yaptıysanız, iade işlemi başlatılacaktır. "
                    "Detaylı bilgi için bizimle iletişime geçebilirsiniz."),
        "button": "Sipariş Detayları",
        "color": "#ef4444",
    },
    "payment_failed": {
        "title": "Ödeme Başarısız",
        "message": ("Siparişiniz için ödeme işlemi başarısız oldu. Lütfen farklı bir ödeme yöntemi "
                    "deneyiniz veya bizimle iletişime geçiniz."),
        "button": "Tekrar Dene",
        "color": "#f59e0b",
    },
    "pending_payment": {
        "title": "Ödeme Bekleniyor",
        "message": ("Siparişiniz oluşturuldu, ödeme bekleniyor. Havale/EFT ile ödeme yapacaksanız "
                    "lütfen açıklama kısmına sipariş numaranızı yazınız."),
        "button": "Ödeme Bilgilerini Gör",
        "color": "#3b82f6",
    },
    "refunded": {
        "title": "İade İşleminiz Tamamlandı",
        "message": "Siparişiniz için iade işlemi tamamlanmıştır.",
        "button": "Sipariş Detayları",
        "color": "#10b981",
    },
}

STATUS_SUBJECTS = {
    "confirmed": "Siparişiniz Onaylandı",
    "processing": "Siparişiniz Hazırlanıyor",
    "shipped": "Siparişiniz Yola Çıktı",
    "delivered": "Siparişiniz Teslim Edildi",
    "cancelled": "Siparişiniz İptal Edildi",
    "payment_failed": "Ödeme Başarısız",
    "pending_payment": "Ödeme Bekleniyor",
    "refunded": "İade Tamamlandı",
}

REMINDER_COPY = {
    1: {
        "subject": "🛒 Siparişiniz bekliyor!",
        "headline": "Siparişiniz sizi bekliyor!",
        "subheadline": "Ödemenizi tamamlayarak çiçeklerinizi güvenceye alın",
        "urgency": "",
        "button": "Ödemeyi Tamamla",
        "color": "#3b82f6",
    },
    2: {
        "subject": "⏰ Ödemenizi unutmayın!",
        "headline": "Siparişiniz hâlâ bekliyor!",
        "subheadline": "Teslimat tarihinize yetişmesi için ödemenizi yapın",
        "urgency": "Siparişiniz 24 saat içinde iptal edilebilir",
        "button": "Hemen Öde",
        "color": "#f59e0b",
    },
    3: {
        "subject": "🚨 Son Hatırlatma: Siparişiniz iptal edilecek",
        "headline": "Son Hatırlatma!",
        "subheadline": "Siparişiniz çok yakında iptal edilecek",
        "urgency": "Bu son hatırlatmadır, ödeme yapılmazsa sipariş iptal edilecektir",
        "button": "Acil Öde",
        "color": "#ef4444",
    },
}

TEMPLATES = {
    "base.html": """<!DOCTYPE html>
<html lang="tr">
  <head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{{ title }}</title>
  </head>
  <body style="margin:0;padding:0;background:#ffffff;font-family:-apple-system,'Segoe UI',Roboto,Arial,sans-serif;color:#1d1d1f;">
    <table role="presentation" width="100%" cellpadding="0" cellspacing="0" border="0">
      <tr><td align="center">
        <table role="presentation" width="100%" cellpadding="0" cellspacing="0" border="0" style="max-width:560px;margin:0 auto;">
          <tr><td style="padding:40px 24px 16px 24px;text-align:center;">
            <a href="{{ site_url }}"><img src="{{ logo_url }}" alt="Vadiler Çiçekçilik" height="40" style="height:40px;"></a>
          </td></tr>
          <tr><td style="padding:0 24px 32px 24px;">
            {% block content %}{% endblock %}
          </td></tr>
          <tr><td style="padding:24px;border-top:1px solid #e5e5e5;text-align:center;font-size:12px;color:#86868b;">
            Vadiler Çiçekçilik · <a href="{{ site_url }}" style="color:#86868b;">{{ site_host }}</a>
          </td></tr>
        </table>
      </td></tr>
    </table>
  </body>
</html>""",

    "otp.html": """{% extends "base.html" %}
{% block content %}
<h1 style="font-size:24px;font-weight:600;text-align:center;">{{ title }}</h1>
<p style="font-size:15px;color:#424245;text-align:center;">{{ purpose_label }} işleminizi tamamlamak için aşağıdaki kodu kullanın.</p>
<p style="font-size:36px;font-weight:700;letter-spacing:8px;text-align:center;margin:32px 0;">{{ code }}</p>
<p style="font-size:13px;color:#86868b;text-align:center;">Kod {{ ttl_minutes }} dakika geçerlidir. Bu işlemi siz başlatmadıysanız bu e-postayı yok sayabilirsiniz.</p>
{% endblock %}""",

    "order_items.html": """<table role="presentation" width="100%" cellpadding="0" cellspacing="0" border="0" style="margin:16px 0;">
{% for item in items %}
  <tr>
    <td style="padding:8px 0;">
      <p style="margin:0;font-size:15px;font-weight:500;">{{ item.name }}</p>
      <p style="margin:4px 0 0 0;font-size:13px;color:#86868b;">Adet: {{ item.quantity }}</p>
    </td>
    <td align="right" style="padding:8px 0;font-size:15px;font-weight:500;">{{ item.line_total }} ₺</td>
  </tr>
{% endfor %}
  <tr><td style="padding-top:12px;color:#86868b;">Ara Toplam</td><td align="right" style="padding-top:12px;">{{ subtotal }} ₺</td></tr>
  {% if show_discount %}<tr><td style="color:#10b981;">İndirim</td><td align="right" style="color:#10b981;">-{{ discount }} ₺</td></tr>{% endif %}
  <tr><td style="color:#86868b;">Teslimat</td><td align="right">{% if has_delivery_fee %}{{ delivery_fee }} ₺{% else %}Ücretsiz{% endif %}</td></tr>
  <tr><td style="padding-top:8px;font-weight:600;">Toplam</td><td align="right" style="padding-top:8px;font-weight:600;">{{ total }} ₺</td></tr>
</table>""",

    "delivery.html": """{% if delivery_date or delivery_address or recipient_name %}
<table role="presentation" width="100%" cellpadding="0" cellspacing="0" border="0" style="margin:16px 0;background:#f5f5f7;border-radius:12px;">
  <tr><td style="padding:16px;font-size:14px;line-height:1.6;">
    <p style="margin:0 0 8px 0;font-weight:600;">Teslimat Bilgileri</p>
    {% if recipient_name %}<p style="margin:0;">Alıcı: {{ recipient_name }}{% if recipient_phone %} · {{ recipient_phone }}{% endif %}</p>{% endif %}
    {% if delivery_address %}<p style="margin:0;">Adres: {{ delivery_address }}{% if district %}, {{ district }}{% endif %}</p>{% endif %}
    {% if delivery_date %}<p style="margin:0;">Tarih: {{ delivery_date }}{% if delivery_time %} · {{ delivery_time }}{% endif %}</p>{% endif %}
  </td></tr>
</table>
{% endif %}""",

    "order_confirmation.html": """{% extends "base.html" %}
{% block content %}
<h1 style="font-size:24px;font-weight:600;">Siparişiniz Alındı</h1>
<p style="font-size:15px;color:#424245;">Merhaba {{ customer_name }}, #{{ order_number }} numaralı siparişiniz için teşekkür ederiz. Ödemeniz onaylandı.</p>
{% include "order_items.html" %}
{% include "delivery.html" %}
<p style="text-align:center;margin:32px 0;"><a href="{{ tracking_url }}" style="background:#1d1d1f;color:#ffffff;padding:14px 28px;border-radius:980px;text-decoration:none;">Siparişimi Takip Et</a></p>
{% endblock %}""",

    "bank_transfer.html": """{% extends "base.html" %}
{% block content %}
<h1 style="font-size:24px;font-weight:600;">Siparişiniz Alındı</h1>
<p style="font-size:15px;color:#424245;">Merhaba {{ customer_name }}, #{{ order_number }} numaralı siparişiniz oluşturuldu. Siparişinizin hazırlanması için ödemenizi Havale/EFT ile yapmanız gerekmektedir.</p>
<table role="presentation" width="100%" cellpadding="0" cellspacing="0" border="0" style="margin:16px 0;background:#ecfdf5;border-radius:12px;">
  <tr><td style="padding:20px;font-size:14px;line-height:1.8;color:#065f46;">
    <p style="margin:0 0 8px 0;font-size:17px;font-weight:600;">Banka Hesap Bilgileri</p>
    <p style="margin:0;">Banka: {{ bank_name }}</p>
    <p style="margin:0;">Hesap Sahibi: {{ account_holder }}</p>
    <p style="margin:0;">IBAN: {{ iban }}</p>
    <p style="margin:0;">Tutar: {{ total }} ₺</p>
    <p style="margin:8px 0 0 0;font-weight:600;">Açıklama kısmına sipariş numaranızı (#{{ order_number }}) yazınız.</p>
  </td></tr>
</table>
{% include "order_items.html" %}
{% include "delivery.html" %}
<p style="text-align:center;margin:32px 0;"><a href="{{ tracking_url }}" style="background:#1d1d1f;color:#ffffff;padding:14px 28px;border-radius:980px;text-decoration:none;">Siparişimi Takip Et</a></p>
{% endblock %}""",

    "status_update.html": """{% extends "base.html" %}
{% block content %}
<h1 style="font-size:24px;font-weight:600;color:{{ color }};">{{ title }}</h1>
<p style="font-size:15px;color:#424245;">Merhaba {{ customer_name }},</p>
<p style="font-size:15px;color:#424245;">{{ message }}</p>
<p style="font-size:14px;color:#86868b;">Sipariş No: #{{ order_number }}</p>
{% include "delivery.html" %}
<p style="text-align:center;margin:32px 0;"><a href="{{ tracking_url }}" style="background:{{ color }};color:#ffffff;padding:14px 28px;border-radius:980px;text-decoration:none;">{{ button }}</a></p>
{% endblock %}""",

    "payment_reminder.html": """{% extends "base.html" %}
{% block content %}
<h1 style="font-size:24px;font-weight:600;color:{{ color }};">{{ headline }}</h1>
<p style="font-size:15px;color:#424245;">Merhaba {{ customer_name }}, {{ subheadline }}.</p>
{% if urgency %}<p style="font-size:14px;font-weight:600;color:{{ color }};">{{ urgency }}</p>{% endif %}
<p style="font-size:14px;color:#86868b;">Sipariş No: #{{ order_number }}</p>
{% include "order_items.html" %}
{% include "delivery.html" %}
<p style="text-align:center;margin:32px 0;"><a href="{{ payment_url }}" style="background:{{ color }};color:#ffffff;padding:14px 28px;border-radius:980px;text-decoration:none;">{{ button }}</a></p>
<p style="font-size:13px;color:#86868b;text-align:center;">Havale/EFT ile ödemek isterseniz: {{ bank_name }} · {{ iban }} · {{ account_holder }}</p>
{% endblock %}""",

    "test.html": """{% extends "base.html" %}
{% block content %}
<h1 style="font-size:24px;font-weight:600;">Test E-postası</h1>
<p style="font-size:15px;color:#424245;">SMTP ayarları çalışıyor.</p>
{% endblock %}""",
}

LOGO_URL = "https://res.cloudinary.com/dgdl1vdao/image/upload/v1768159827/branding/vadiler-logo.png"

_env = Environment(loader=DictLoader(TEMPLATES), autoescape=select_autoescape(["html"]))


@dataclass
class EmailSendResult:
    success: bool
    error: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "error": self.error, "errorCode": self.error_code}


_INVALID_RECIPIENT_HINTS = (
    "invalid", "does not exist", "user unknown", "no such user", "mailbox not found",
    "recipient rejected", "undeliverable", "address rejected",
)


def classify_email_error(error: BaseException) -> EmailSendResult:
    """Map an SMTP exception to INVALID_EMAIL, CONNECTION_ERROR, SMTP_ERROR or UNKNOWN"""
    message = str(error).lower()
    smtp_code = getattr(error, "smtp_code", 0) or 0

    if isinstance(error, smtplib.SMTPRecipientsRefused):
        codes = [code for code, _ in error.recipients.values()]
        smtp_code = codes[0] if codes else smtp_code

    if (isinstance(error, smtplib.SMTPRecipientsRefused)
            or smtp_code in (550, 553, 554)
            or any(hint in message for hint in _INVALID_RECIPIENT_HINTS)):
        return EmailSendResult(
            success=False,
            error="Bu e-posta adresine mesaj gönderilemedi. Lütfen e-posta adresinizi kontrol edin.",
            error_code="INVALID_EMAIL",
        )

    if (isinstance(error, (smtplib.SMTPConnectError, smtplib.SMTPServerDisconnected,
                           ConnectionError, socket.timeout, socket.gaierror))
            or "connection" in message or "timeout" in message):
        return EmailSendResult(
            success=False,
            error="E-posta sunucusuna bağlanılamadı. Lütfen daha sonra tekrar deneyin.",
            error_code="CONNECTION_ERROR",
        )

    if 500 <= smtp_code < 600:
        return EmailSendResult(
            success=False,
            error="E-posta gönderilemedi. Lütfen daha sonra tekrar deneyin.",
            error_code="SMTP_ERROR",
        )

    return EmailSendResult(
        success=False,
        error="E-posta gönderilemedi. Lütfen tekrar deneyin.",
        error_code="UNKNOWN",
    )


def site_url() -> str:
    raw = (settings.SITE_URL or "").strip()
    if not raw:
        return "https://vadiler.com"
    if not raw.startswith(("http://", "https://")):
        raw = f"https://{raw}"
    return raw.rstrip("/")


def build_tracking_url(order_number: Any, verification_type: Optional[str] = None,
                       verification_value: Optional[str] = None) -> str:
    params = {"order": str(order_number)}
    value = (verification_value or "").strip()
    if verification_type in ("email", "phone") and value:
        params["vtype"] = verification_type
        params["v"] = value
    return f"{site_url()}/siparis-takip?{urlencode(params)}"


def _money(value: Any) -> str:
    return format_try(value)


def _order_context(order: Order) -> Dict[str, Any]:
    """Template variables shared by the order emails"""
    delivery = order.delivery or {}
    items = [
        {
            "name": line.get("name") or "",
            "quantity": int(line.get("quantity") or 0),
            "line_total": _money(float(line.get("price") or 0) * int(line.get("quantity") or 0)),
        }
        for line in order.products
    ]
    return {
        "order_number": order.order_number,
        "customer_name": order.customer_name or "Değerli Müşterimiz",
        "items": items,
        "subtotal": _money(order.subtotal),
        "discount": _money(order.discount),
        "show_discount": order.discount > 0,
        "delivery_fee": _money(order.delivery_fee),
        "has_delivery_fee": order.delivery_fee > 0,
        "total": _money(order.total),
        "delivery_address": (delivery.get("fullAddress") or delivery.get("recipientAddress")
                             or delivery.get("address") or ""),
        "district": delivery.get("district") or "",
        "delivery_date": delivery.get("deliveryDate") or "",
        "delivery_time": delivery.get("deliveryTimeSlot") or delivery.get("deliveryTime") or "",
        "recipient_name": delivery.get("recipientName") or "",
        "recipient_phone": delivery.get("recipientPhone") or "",
        "tracking_url": build_tracking_url(order.order_number, "email", order.customer_email),
    }


class EmailService:
    """
    SMTP sender for storefront emails

    A fresh connection is opened per message; volumes are a few hundred
    emails a day.
    """

    def __init__(self, host: str = None, port: int = None, user: str = None,
                 password: str = None, secure: Optional[bool] = None):
        self.host = host or settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.user = user if user is not None else settings.SMTP_USER
        self.password = password if password is not None else settings.SMTP_PASSWORD
        self.secure = secure if secure is not None else settings.smtp_secure

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _render(self, template: str, **context) -> str:
        base = site_url()
        context.setdefault("site_url", base)
        context.setdefault("site_host", base.split("://", 1)[-1])
        context.setdefault("logo_url", LOGO_URL)
        return _env.get_template(template).render(**context)

    def _connect(self) -> smtplib.SMTP:
        if self.secure:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS)
        server = smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS)
        server.starttls()
        return server

    def send_email(self, to: str, subject: str, html: str, text: Optional[str] = None) -> EmailSendResult:
        """Send one message; failures are logged and returned, never raised"""
        from_email = self.user or settings.SMTP_FROM_EMAIL

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((settings.SMTP_FROM_NAME, from_email))
        msg["To"] = to
        if text:
            msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))

        try:
            server = self._connect()
            try:
                if self.user:
                    server.login(self.user, self.password)
                server.send_message(msg)
            finally:
                server.quit()
        except (smtplib.SMTPException, OSError) as e:
            result = classify_email_error(e)
            logger.error(f"Email to {to} failed ({result.error_code}): {e}")
            return result

        logger.info(f"Email sent to {to}: {subject}")
        return EmailSendResult(success=True)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def send_customer_otp(self, to: str, code: str, purpose: str,
                          ttl_minutes: int = 10) -> EmailSendResult:
        meta = OTP_PURPOSES.get(purpose, OTP_PURPOSES["login"])
        html = self._render(
            "otp.html",
            title=meta["title"],
            purpose_label=meta["label"],
            code=code,
            ttl_minutes=ttl_minutes,
        )
        return self.send_email(
            to=to,
            subject=f"{meta['emoji']} Vadiler {meta['label']} Doğrulama Kodu",
            html=html,
            text=f"Vadiler {meta['label']} doğrulama kodunuz: {code}. Kod {ttl_minutes} dakika geçerlidir.",
        )

    def send_order_confirmation(self, order: Order) -> bool:
        if not order.customer_email or not order.order_number:
            logger.warning(f"Order {order.id}: missing email or order number, confirmation skipped")
            return False

        context = _order_context(order)
        html = self._render("order_confirmation.html", title="Siparişiniz Alındı", **context)
        result = self.send_email(
            to=order.customer_email,
            subject=f"✓ Siparişiniz Alındı - #{order.order_number}",
            html=html,
            text=(f"Siparişiniz alındı! Sipariş No: {order.order_number}. "
                  f"Toplam: {context['total']} ₺. Sipariş takibi: {context['tracking_url']}"),
        )
        return result.success

    def send_bank_transfer_confirmation(self, order: Order) -> bool:
        if not order.customer_email or not order.order_number:
            return False

        context = _order_context(order)
        html = self._render(
            "bank_transfer.html",
            title="Siparişiniz Alındı - Ödeme Bekleniyor",
            bank_name=BANK_NAME,
            iban=BANK_IBAN,
            account_holder=BANK_ACCOUNT_HOLDER,
            **context,
        )
        result = self.send_email(
            to=order.customer_email,
            subject=f"🏦 Siparişiniz Alındı - Ödeme Bekleniyor - #{order.order_number}",
            html=html,
            text=(f"Siparişiniz alındı! Sipariş No: {order.order_number}. Havale/EFT için: "
                  f"{BANK_NAME}, IBAN: {BANK_IBAN}, Hesap Sahibi: {BANK_ACCOUNT_HOLDER}, "
                  f"Tutar: {float(order.total):.2f} ₺. Açıklamaya sipariş numaranızı yazınız. "
                  f"Sipariş takibi: {context['tracking_url']}"),
        )
        return result.success

    def send_order_status_update(self, order: Order, status: str,
                                 refund_amount: Optional[float] = None,
                                 refund_reason: Optional[str] = None) -> bool:
        copy = STATUS_COPY.get(status)
        if copy is None or not order.customer_email or not order.order_number:
            return False

        message = copy["message"]
        if status == "refunded":
            if refund_amount:
                message += f" İade tutarı: ₺{_money(refund_amount)}."
            message += " Tutar, ödeme yönteminize göre 3-7 iş günü içinde hesabınıza yansıyacaktır."
            if refund_reason:
                message += f" İade sebebi: {refund_reason}"

        context = _order_context(order)
        context.update(copy)
        context["message"] = message
        html = self._render("status_update.html", **context)

        result = self.send_email(
            to=order.customer_email,
            subject=f"{STATUS_SUBJECTS[status]} - #{order.order_number}",
            html=html,
            text=f"{copy['title']} - Sipariş No: {order.order_number}. {message} {context['tracking_url']}",
        )
        return result.success

    def send_payment_reminder(self, order: Order, reminder_count: int) -> bool:
        if not order.customer_email or not order.order_number:
            return False

        copy = dict(REMINDER_COPY.get(reminder_count, REMINDER_COPY[1]))
        subject = f"{copy['subject']} - #{order.order_number}"
        if order.status == "payment_failed":
            copy["headline"] = "Ödemeniz başarısız oldu!"
            copy["subheadline"] = "Lütfen tekrar deneyin veya farklı bir ödeme yöntemi seçin"
            subject = f"❌ Ödemeniz başarısız oldu - #{order.order_number}"

        context = _order_context(order)
        payment_url = f"{context['tracking_url']}#payment-section"
        html = self._render(
            "payment_reminder.html",
            title=copy["headline"],
            payment_url=payment_url,
            bank_name=BANK_NAME,
            iban=BANK_IBAN,
            account_holder=BANK_ACCOUNT_HOLDER,
            **copy,
            **context,
        )
        result = self.send_email(
            to=order.customer_email,
            subject=subject,
            html=html,
            text=(f"{copy['headline']} - Sipariş No: {order.order_number}. "
                  f"Toplam: {context['total']} ₺. Ödeme için: {payment_url}"),
        )
        return result.success

    def send_test_email(self, to: str) -> EmailSendResult:
        html = self._render("test.html", title="Test Email")
        return self.send_email(to=to, subject="Test Email - Vadiler Çiçekçilik", html=html,
                               text="SMTP ayarları çalışıyor.")


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
