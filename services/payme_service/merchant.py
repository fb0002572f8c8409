"""Authentication of inbound Payme merchant API calls."""
import base64
import binascii
import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)

# Login Payme used before merchant ids were sent in the header
LEGACY_LOGIN = "Paycom"


class MerchantAuthenticator:
    """
    Checks the ``Authorization`` header Payme attaches to every callback.

    Payme authenticates with HTTP Basic auth where the password is the
    merchant's secret key and the login is either the merchant id or
    the legacy ``Paycom`` login.
    """

    def __init__(self, merchant_id: str, secret_key: str):
        self.merchant_id = merchant_id
        self.secret_key = secret_key

    def is_authorized(self, authorization: Optional[str]) -> bool:
        """Return True only if the header carries this merchant's credentials."""
        if not self.secret_key:
            logger.error("Payme secret key is not configured, rejecting callback")
            return False

        if not authorization or not authorization.startswith("Basic "):
            logger.warning("Payme auth: missing or non-Basic Authorization header")
            return False

        try:
            decoded = base64.b64decode(authorization[6:].strip(), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            logger.warning("Payme auth: Authorization header is not valid base64")
            return False

        login, sep, password = decoded.partition(":")
        if not sep:
            logger.warning("Payme auth: credentials carry no password")
            return False

        password_ok = hmac.compare_digest(password.encode(), self.secret_key.encode())
        login_ok = hmac.compare_digest(login.encode(), LEGACY_LOGIN.encode())
        if self.merchant_id:
            login_ok |= hmac.compare_digest(login.encode(), self.merchant_id.encode())

        if not (password_ok and login_ok):
            logger.warning(f"Payme auth: invalid credentials for login {login!r}")
            return False

        return True
