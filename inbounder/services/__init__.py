from .webhook_auth import AuthError, AuthErrorKind, WebhookAuthConfig, WebhookAuthenticator
from .tracking import DeliveryStateTracker, TrackerError, TrackerErrorKind
