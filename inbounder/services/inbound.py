import json
import logging
import os
import re
from typing import Any, List, Mapping, Optional

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from inbounder.extensions import db
from inbounder.models import InboundEmail, InboundEmailAttachment
from .events import normalize_message_id

logger = logging.getLogger(__name__)

# Never persisted: the signature block is request auth, not message content
_AUTH_FIELDS = ("timestamp", "token", "signature")
_ATTACHMENT_FIELD = re.compile(r"^attachment-(\d+)$")
_MAX_ATTACHMENTS = 100


def _lower(value: Any) -> Optional[str]:
    return value.strip().lower() if isinstance(value, str) and value.strip() else None


def extract_message_id(form: Mapping[str, Any]) -> Optional[str]:
    """Message-Id field, else the Message-Id entry of the JSON 'message-headers' list."""
    direct = form.get("Message-Id") or form.get("message-id")
    if direct:
        return normalize_message_id(direct)
    raw = form.get("message-headers")
    if not raw:
        return None
    try:
        headers = json.loads(raw) if isinstance(raw, str) else raw
    except ValueError:
        return None
    for header in headers or []:
        if isinstance(header, (list, tuple)) and len(header) >= 2 and str(header[0]).lower() == "message-id":
            return normalize_message_id(header[1])
    return None


def _attachments_root() -> str:
    root = current_app.config.get("INBOUND_ATTACHMENTS_DIR")
    return root or os.path.join(current_app.instance_path, "inbound_attachments")


def _stream_size(upload: FileStorage) -> int:
    stream = upload.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def _attachment_indexes(form: Mapping[str, Any], files: Mapping[str, FileStorage]) -> List[int]:
    try:
        declared = min(int(form.get("attachment-count") or 0), _MAX_ATTACHMENTS)
    except (TypeError, ValueError):
        declared = 0
    indexes = set(range(1, declared + 1))
    for key in files:
        match = _ATTACHMENT_FIELD.match(key)
        if match:
            indexes.add(int(match.group(1)))
    return sorted(indexes)


def _save_attachments(
    email: InboundEmail,
    form: Mapping[str, Any],
    files: Mapping[str, FileStorage],
) -> List[InboundEmailAttachment]:
    """
    Mailgun posts ``attachment-N`` file parts plus ``attachment-count``.
    Without a file part, the ``name-N``/``content-type-N``/``size-N`` fields
    are kept as metadata only. Oversized attachments are skipped.
    """
    max_size = int(current_app.config.get("INBOUND_MAX_ATTACHMENT_SIZE") or 0)
    store = bool(current_app.config.get("INBOUND_STORE_ATTACHMENTS", True))
    saved = []

    for index in _attachment_indexes(form, files):
        upload = files.get(f"attachment-{index}")
        if upload is not None:
            name = upload.filename or f"attachment-{index}"
            content_type = upload.mimetype or "application/octet-stream"
            size = _stream_size(upload)
            disposition = "attachment"
        else:
            name = form.get(f"name-{index}")
            if not name:
                continue
            content_type = form.get(f"content-type-{index}") or "application/octet-stream"
            try:
                size = int(form.get(f"size-{index}") or 0)
            except (TypeError, ValueError):
                size = 0
            disposition = form.get(f"disposition-{index}") or "attachment"

        if max_size and size > max_size:
            logger.warning("Skipping attachment %r on inbound email %s: %s bytes > %s", name, email.id, size, max_size)
            continue

        safe_name = secure_filename(name) or f"attachment-{index}"
        file_path = None
        if store and upload is not None:
            file_path = os.path.join(str(email.id), f"{index}-{safe_name}")
            target = os.path.join(_attachments_root(), file_path)
            os.makedirs(os.path.dirname(target), exist_ok=True)
            upload.save(target)

        attachment = InboundEmailAttachment(
            filename=safe_name,
            original_name=name,
            content_type=content_type,
            size=size,
            file_path=file_path,
            disposition=disposition,
        )
        email.attachments.append(attachment)
        saved.append(attachment)

    return saved


def store_inbound_email(
    form: Mapping[str, Any],
    files: Optional[Mapping[str, FileStorage]] = None,
) -> InboundEmail:
    """Persist a Mailgun route POST (parsed form or JSON) and its attachments."""
    email = InboundEmail(
        message_id=extract_message_id(form),
        from_address=_lower(form.get("from") or form.get("From")),
        sender=_lower(form.get("sender")),
        recipient=_lower(form.get("recipient") or form.get("To") or form.get("to")),
        subject=form.get("subject") or form.get("Subject"),
        body_plain=form.get("body-plain"),
        body_html=form.get("body-html"),
        stripped_text=form.get("stripped-text"),
        raw_data={k: v for k, v in form.items() if k not in _AUTH_FIELDS},
    )
    db.session.add(email)
    # id is needed for the attachment directory
    db.session.flush()

    attachments = _save_attachments(email, form, files or {})
    email.attachment_count = len(attachments)
    db.session.commit()
    logger.info(
        "Stored inbound email id=%s from %s to %s with %s attachment(s)",
        email.id, email.sender, email.recipient, email.attachment_count,
    )
    return email
