from authsvc.models.app import App
from authsvc.models.refresh_token import RefreshToken
from authsvc.models.user import User

__all__ = [
    "App",
    "RefreshToken",
    "User",
]
