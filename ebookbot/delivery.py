import re
import unicodedata
from typing import Optional

from jose import JWTError, jwt

ALGORITHM = "HS256"
EXTENSION = ".pdf"


def file_name(title: str) -> str:
    # accents fold to their base letter; other non-ASCII characters are dropped
    folded = unicodedata.normalize("NFKD", title or "").encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"\s+", "-", folded.strip().lower())
    return re.sub(r"[^a-z0-9._-]", "", slug) + EXTENSION


class DeliverySigner:
    """Builds download links for purchased ebooks.

    With a secret, each link carries an HS256 token binding the file to the
    checkout session it was bought with. The token has no expiry so the same
    order always yields the same link. Without a secret the bare file URL is
    returned.
    """

    def __init__(self, base_url: str, secret: Optional[str] = None):
        self.base_url = base_url.rstrip("/")
        self.secret = secret

    @property
    def signed(self) -> bool:
        return bool(self.secret)

    def reference(self, title: str, session_id: str) -> str:
        name = file_name(title)
        url = f"{self.base_url}/files/{name}"
        if not self.secret:
            return url
        token = jwt.encode({"file": name, "sid": session_id}, self.secret, algorithm=ALGORITHM)
        return f"{url}?token={token}"

    def verify(self, name: str, token: Optional[str]) -> bool:
        if not self.secret:
            return True
        if not token:
            return False
        try:
            claims = jwt.decode(token, self.secret, algorithms=[ALGORITHM])
        except JWTError:
            return False
        return claims.get("file") == name
