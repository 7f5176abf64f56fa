import logging
from typing import Optional
from hrms.config import settings

logger = logging.getLogger(__name__)

class Mailer:
    """
    Hand-off point to the transactional mail provider.
    The workflow core only builds address, subject and HTML body.
    """
    def __init__(self, sender: Optional[str] = None):
        self.sender = sender or settings.MAIL_FROM

    async def send_email(self, to: str, subject: str, html: str) -> bool:
        if not to:
            logger.warning(f"Dropping e-mail without recipient: {subject}")
            return False
        # e.g. provider_client.send(from_=self.sender, to=to, subject=subject, html=html)
        logger.info(f"[EMAIL] From {self.sender} To {to} | Subject: {subject}")
        return True

mailer = Mailer()
