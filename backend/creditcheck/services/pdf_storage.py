"""Local storage for credit-report PDF copies.

Bureau-hosted PDF links expire, so a copy is kept under
``settings.upload_dir/credit-reports/<user_id>/`` and served from
``settings.public_files_url``. Only the latest report per user keeps its copy.
"""

import logging
import os
from datetime import datetime, timezone

from creditcheck.config import settings

logger = logging.getLogger(__name__)

PDF_SUBDIR = "credit-reports"


def save_pdf(content: bytes, user_id: int, pan_suffix: str = "XXXX") -> tuple[str, str]:
    """Write ``content`` to disk; return (relative path, public URL)."""
    if not content.startswith(b"%PDF"):
        raise ValueError("Downloaded file is not a PDF")
    if len(content) > settings.max_pdf_size_mb * 1024 * 1024:
        raise ValueError(f"PDF exceeds {settings.max_pdf_size_mb} MB")

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S%f")
    rel_path = os.path.join(PDF_SUBDIR, str(user_id), f"cibil_{pan_suffix}_{stamp}.pdf")
    abs_path = os.path.join(settings.upload_dir, rel_path)
    os.makedirs(os.path.dirname(abs_path), exist_ok=True)
    with open(abs_path, "wb") as f:
        f.write(content)

    url = f"{settings.public_files_url.rstrip('/')}/{rel_path.replace(os.sep, '/')}"
    logger.info("Stored credit report PDF for user %s at %s", user_id, rel_path)
    return rel_path, url


def delete_pdf(rel_path: str) -> bool:
    """Remove a stored copy. Returns False if it was already gone."""
    abs_path = os.path.join(settings.upload_dir, rel_path)
    try:
        os.remove(abs_path)
    except FileNotFoundError:
        logger.warning("PDF %s already removed", rel_path)
        return False
    return True
