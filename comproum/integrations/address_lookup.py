"""
Postal code (CEP) address lookup via ViaCEP.

The service is only queried once the cleaned code has exactly 8 digits.
A ``{"erro": true}`` reply, a network failure or a malformed body all mean
"not found" and are logged, never raised.
"""

import logging
import re
from dataclasses import asdict, dataclass
from typing import Optional

import requests

from comproum.config import ADDRESS_LOOKUP_TIMEOUT, ADDRESS_LOOKUP_URL

logger = logging.getLogger(__name__)

POSTAL_CODE_DIGITS = 8
LOOKUP_FIELDS = ("street", "neighborhood", "city", "state")


@dataclass
class AddressLookupResult:
    """Address parts returned by the lookup service"""
    postal_code: str
    street: str = ""
    neighborhood: str = ""
    city: str = ""
    state: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def clean_postal_code(postal_code: Optional[str]) -> str:
    return re.sub(r"\D", "", postal_code or "")


def lookup_address(postal_code: str, timeout: float = ADDRESS_LOOKUP_TIMEOUT) -> Optional[AddressLookupResult]:
    """
    Look up a Brazilian postal code.

    Args:
        postal_code: CEP in any format ("01310-100", "01310100")
        timeout: Request timeout in seconds

    Returns:
        AddressLookupResult, or None when the code is incomplete, unknown, or
        the service could not be reached
    """
    digits = clean_postal_code(postal_code)
    if len(digits) != POSTAL_CODE_DIGITS:
        return None

    url = ADDRESS_LOOKUP_URL.format(postal_code=digits)
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning(f"Address lookup for {digits} failed: {str(e)}")
        return None

    if not isinstance(data, dict) or data.get("erro"):
        logger.info(f"Postal code {digits} not found")
        return None

    return AddressLookupResult(
        postal_code=digits,
        street=data.get("logradouro") or "",
        neighborhood=data.get("bairro") or "",
        city=data.get("localidade") or "",
        state=data.get("uf") or "",
    )


def merge_address(address: Optional[dict], result: Optional[AddressLookupResult]) -> dict:
    """
    Fill an address form from a lookup result.

    Client-side helper for forms that call GET /api/address/{postal_code};
    the service never rewrites a stored address from a lookup. Fields the
    lookup left blank keep their previous value; number and complement are
    never touched. The zip becomes the cleaned code.
    """
    merged = dict(address or {})
    if result is None:
        return merged
    for name in LOOKUP_FIELDS:
        value = getattr(result, name)
        if value:
            merged[name] = value
    merged["zip"] = result.postal_code
    return merged
