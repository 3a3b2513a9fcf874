from .outbound_email import OutboundEmail
from .webhook_event import WebhookEventLog
from .tenant import Tenant
from .inbound_email import InboundEmail
from .inbound_email_attachment import InboundEmailAttachment
