"""
ApmSender - Delivers transactions to an APM intake endpoint.

Each transaction is posted on its own as a two-line newline-delimited JSON
document: the service metadata first, then the transaction.

Example:
    >>> import requests
    >>> from apmexport.exporters.sender import ApmSender
    >>>
    >>> sender = ApmSender("http://localhost:8200/intake/v2/events",
    ...                    session=requests.Session())
    >>> sender.send(transaction)
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import requests

from apmexport.core.model import SERVICE_METADATA, Service, Transaction
from apmexport.errors import SendError

logger = logging.getLogger(__name__)

NDJSON_CONTENT_TYPE = "application/x-ndjson"


def _dumps(value: Dict[str, Any]) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def build_payload(
    transaction: Transaction,
    service: Service = SERVICE_METADATA,
) -> bytes:
    """Serialize the metadata and transaction lines of an intake request.

    Args:
        transaction: The transaction to send.
        service: Service descriptor for the metadata line.

    Returns:
        UTF-8 encoded ndjson body, one JSON document per line.
    """
    lines = [
        _dumps({"metadata": {"service": service.to_dict()}}),
        _dumps({"transaction": transaction.to_dict()}),
    ]
    return ("\n".join(lines) + "\n").encode("utf-8")


class ApmSender:
    """Posts transactions to an APM endpoint, one request per transaction.

    The HTTP session is injected so callers control pooling, TLS and
    authentication. When no session is given the sender creates one and
    closes it in ``close()``.

    Attributes:
        endpoint: Intake URL transactions are posted to
        session: The requests session used for posting
    """

    def __init__(self, endpoint: str, session: Optional[requests.Session] = None) -> None:
        self.endpoint = endpoint
        self._owns_session = session is None
        self.session = session if session is not None else requests.Session()

    def send(self, transaction: Transaction) -> None:
        """Post a single transaction.

        The response status code is not used to decide success; only
        transport-level errors are reported.

        Args:
            transaction: The transaction to send.

        Raises:
            SendError: If the POST fails or the response cannot be closed.
        """
        payload = build_payload(transaction)
        logger.debug("Sending payload to %s:\n%s", self.endpoint, payload.decode("utf-8"))

        try:
            response = self.session.post(
                self.endpoint,
                data=payload,
                headers={"Content-Type": NDJSON_CONTENT_TYPE},
            )
        except requests.RequestException as e:
            raise SendError(f"Failed to send transaction to {self.endpoint}: {e}", self.endpoint) from e

        if response.status_code >= 400:
            logger.warning(
                "APM endpoint %s answered %d for transaction %s",
                self.endpoint,
                response.status_code,
                transaction.id.hex(),
            )
        else:
            logger.debug("APM endpoint %s answered %d", self.endpoint, response.status_code)

        try:
            response.close()
        except OSError as e:
            raise SendError(f"Failed to close response from {self.endpoint}: {e}", self.endpoint) from e

    def close(self) -> None:
        """Close the HTTP session if this sender created it."""
        if self._owns_session:
            self.session.close()
