"""Fetch raw file content over plain HTTP."""

from __future__ import annotations

import logging

import requests

from gh_trs.env import request_timeout
from gh_trs.errors import ContentUnfetchable

logger = logging.getLogger(__name__)


def fetch_raw_content(
    url: str,
    timeout: float | None = None,
    session: requests.Session | None = None,
) -> str:
    """GET a raw document and return its text.

    Any non-2xx status or transport failure raises ContentUnfetchable,
    which callers treat as a soft failure.
    """
    http = session or requests
    try:
        response = http.get(
            url,
            headers={"Accept": "text/plain"},
            timeout=timeout or request_timeout(),
        )
    except requests.RequestException as e:
        raise ContentUnfetchable(f"Failed to fetch raw content from {url}: {e}", url=url)
    if not response.ok:
        raise ContentUnfetchable(
            f"Failed to fetch raw content from {url} with status code {response.status_code}",
            url=url,
        )
    logger.debug("Fetched %d bytes from %s", len(response.content), url)
    return response.text
