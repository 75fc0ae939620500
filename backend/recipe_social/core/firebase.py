import firebase_admin
from firebase_admin import credentials, auth, messaging
from typing import Optional
from recipe_social.core.config import settings
from recipe_social.utils.logger import safe_print

class FirebaseService:
    """Firebase Admin access for identity (ID tokens) and FCM pushes.

    The app is initialized on first use so importing the service never needs
    credentials (tests, init_db).
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(FirebaseService, cls).__new__(cls)
            cls._instance._app = None
        return cls._instance

    def _service_account(self) -> Optional[dict]:
        if not (settings.FIREBASE_PROJECT_ID and settings.FIREBASE_PRIVATE_KEY and settings.FIREBASE_CLIENT_EMAIL):
            return None
        firebase_config = {
            "type": "service_account",
            "project_id": settings.FIREBASE_PROJECT_ID,
            "private_key_id": settings.FIREBASE_PRIVATE_KEY_ID,
            "private_key": settings.FIREBASE_PRIVATE_KEY.replace('\\n', '\n'),
            "client_email": settings.FIREBASE_CLIENT_EMAIL,
            "client_id": settings.FIREBASE_CLIENT_ID,
            "token_uri": settings.FIREBASE_TOKEN_URI,
        }
        # Remove None values
        return {k: v for k, v in firebase_config.items() if v is not None}

    def _get_app(self):
        """Initialize Firebase Admin SDK"""
        if self._app is not None:
            return self._app
        try:
            self._app = firebase_admin.get_app()
        except ValueError:
            service_account = self._service_account()
            if service_account:
                self._app = firebase_admin.initialize_app(credentials.Certificate(service_account))
            else:
                # Application default credentials (GCP runtime or emulator)
                self._app = firebase_admin.initialize_app()
            safe_print(f"Firebase initialized for project {self._app.project_id}")
        return self._app

    def verify_token(self, token: str) -> dict:
        """Verify Firebase ID token"""
        try:
            decoded_token = auth.verify_id_token(token, app=self._get_app())
        except Exception as e:
            raise ValueError(f"Invalid token: {str(e)}") from e
        return {
            "uid": decoded_token["uid"],
            "email": decoded_token.get("email"),
            "name": decoded_token.get("name"),
            "picture": decoded_token.get("picture"),
        }

    def send_push_notification(self, token: str, title: str, body: str, data: dict = None):
        """Send push notification via FCM"""
        try:
            message = messaging.Message(
                notification=messaging.Notification(
                    title=title,
                    body=body,
                ),
                token=token,
                data={k: str(v) for k, v in (data or {}).items() if v is not None}
            )
            return messaging.send(message, app=self._get_app())
        except Exception as e:
            raise RuntimeError(f"Failed to send notification: {str(e)}") from e

# Create a global instance
firebase_service = FirebaseService()
