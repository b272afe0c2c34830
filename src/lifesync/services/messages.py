"""Message content builders for outbound notifications.

Content is a plain dict the delivery gateway renders: `subject` and `text`
for every channel, plus optional `headers`, `tags` and `attachments` for
email.
"""

import json
from typing import Any
from uuid import uuid4

from lifesync.models.alert import Recipient, SubjectState


def price_alert_email(
    product: SubjectState,
    recipient: Recipient,
    discount: int,
    base_url: str,
    now: int,
) -> dict[str, Any]:
    if recipient.language == "ar":
        subject = f"🚨 انخفاض السعر بنسبة {discount}% على {product.name}"
        text = (
            f"انخفض سعر {product.name} من {product.original_price} "
            f"إلى {product.current_price}.\n{product.product_url}"
        )
    else:
        subject = f"🚨 Price dropped {discount}% for {product.name}"
        text = (
            f"{product.name} dropped from {product.original_price} "
            f"to {product.current_price}.\n{product.product_url}"
        )

    unsubscribe_token = f"{recipient.recipient_id}_{uuid4()}"
    return {
        "subject": subject,
        "text": text,
        "template": "price_alert",
        "data": {
            "productName": product.name,
            "oldPrice": product.original_price,
            "newPrice": product.current_price,
            "discount": discount,
            "productUrl": product.product_url,
            "imageUrl": product.image_url,
            "unsubscribeUrl": f"{base_url}/unsubscribe?token={unsubscribe_token}",
            "language": recipient.language,
        },
        "headers": {
            "X-Entity-Ref-ID": f"price_alert_{product.subject_id}_{now}",
            "X-Price-Alert": "true",
        },
        "tags": [{"name": "alert_type", "value": "price_drop"}],
    }


def price_alert_whatsapp(
    product: SubjectState, recipient: Recipient, discount: int
) -> dict[str, Any]:
    if recipient.language == "ar":
        text = f"🚨 انخفض سعر {product.name} بنسبة {discount}%: {product.product_url}"
    else:
        text = f"🚨 {product.name} is {discount}% off: {product.product_url}"
    return {"subject": "price_alert", "text": text}


def reminder_email(name: str, language: str, template: str) -> dict[str, Any]:
    if language == "ar":
        subject = "تذكير من LifeSync"
        text = f"مرحباً {name}، هذا تذكير بخصوص حسابك في LifeSync."
    else:
        subject = "A reminder from LifeSync"
        text = f"Hi {name}, this is a reminder about your LifeSync account."
    return {"subject": subject, "text": text, "template": template}


def donation_reminder_email(name: str, language: str) -> dict[str, Any]:
    if language == "ar":
        subject = "اشتقنا إليك في LifeSync"
        text = f"مرحباً {name}، مشاريعنا ما زالت بحاجة إلى دعمك."
    else:
        subject = "We miss you at LifeSync"
        text = f"Hi {name}, our projects still need your support."
    return {"subject": subject, "text": text, "template": "donation_reminder"}


def backup_report_email(
    backup: dict[str, list[dict[str, Any]]], generated_at: int
) -> dict[str, Any]:
    counts = ", ".join(f"{name}: {len(rows)}" for name, rows in backup.items())
    return {
        "subject": "LifeSync backup report",
        "text": f"Backup generated at {generated_at}. Records per collection: {counts}",
        "template": "backup_report",
        "attachments": [
            {
                "filename": f"backup-{generated_at}.json",
                "content": json.dumps(backup, default=str),
            }
        ],
    }
