"""
Government ID verification

MockGovernmentVerifier only checks formats and a placeholder Aadhar checksum
(even digit sum, not Verhoeff) and answers with canned identity data. A real
UIDAI / Income Tax integration must expose the same two coroutines returning
VerificationResult so callers do not change.
"""
import asyncio
import logging
import re
from typing import Dict, Optional

from pydantic import BaseModel, Field

import config

logger = logging.getLogger(__name__)

AADHAR_RE = re.compile(r"^\d{4}\s?\d{4}\s?\d{4}$")
PAN_RE = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")

PAN_HOLDER_TYPES = {
    "P": "Individual",
    "F": "Firm/LLP",
    "A": "Association of Persons",
    "T": "Trust",
    "B": "Body of Individuals",
    "C": "Company",
    "G": "Government",
    "H": "HUF",
    "L": "Local Authority",
    "J": "Artificial Juridical Person",
}

AADHAR_DELAY = 2.0
PAN_DELAY = 1.5


class VerificationResult(BaseModel):
    is_valid: bool
    normalized: Dict[str, str] = Field(default_factory=dict)
    name: Optional[str] = None
    dob: Optional[str] = None
    address: Optional[str] = None
    category: Optional[str] = None
    error: Optional[str] = None


def validate_aadhar_format(number: str) -> bool:
    return bool(AADHAR_RE.match(number or ""))


def aadhar_checksum_ok(digits: str) -> bool:
    # Placeholder rule: even digit sum
    return sum(int(d) for d in digits) % 2 == 0


def validate_pan_format(pan: str) -> bool:
    """Strict check on the raw value; lowercase input fails."""
    if not PAN_RE.match(pan or ""):
        return False
    return pan[3] in PAN_HOLDER_TYPES


def extract_pan_info(pan: str) -> Dict[str, str]:
    return {"holder_type": PAN_HOLDER_TYPES.get(pan[3:4], "Unknown"), "series": pan[:3]}


def format_aadhar(number: str) -> str:
    clean = re.sub(r"\s", "", number)
    return re.sub(r"^(\d{4})(\d{4})(\d{4})$", r"\1 \2 \3", clean)


def mask_aadhar(number: str) -> str:
    clean = re.sub(r"\s", "", number)
    return re.sub(r"^(\d{4})(\d{4})(\d{4})$", r"XXXX XXXX \3", clean)


def verification_message(kind: str) -> str:
    if kind == "aadhar":
        return "We verify Aadhar cards through UIDAI (Unique Identification Authority of India) for your security."
    return "We verify PAN cards through Income Tax Department for compliance and security."


class MockGovernmentVerifier:
    def __init__(self, delay_scale: Optional[float] = None):
        self.delay_scale = config.VERIFICATION_DELAY_SCALE if delay_scale is None else delay_scale

    async def _simulate_latency(self, seconds: float):
        if self.delay_scale > 0:
            await asyncio.sleep(seconds * self.delay_scale)

    async def verify_aadhar(self, number: str) -> VerificationResult:
        await self._simulate_latency(AADHAR_DELAY)
        if not validate_aadhar_format(number):
            return VerificationResult(
                is_valid=False,
                error="Invalid Aadhar number format. Please enter a 12-digit number.",
            )
        clean = re.sub(r"\s", "", number)
        if not aadhar_checksum_ok(clean):
            logger.info("Aadhar %s rejected by checksum", mask_aadhar(clean))
            return VerificationResult(
                is_valid=False,
                error="Aadhar number verification failed. Please check the number and try again.",
            )
        return VerificationResult(
            is_valid=True,
            normalized={"aadhar_number": format_aadhar(clean), "masked": mask_aadhar(clean)},
            name="John Doe",
            dob="01/01/1990",
            address="Mock Address from UIDAI",
        )

    async def verify_pan(self, number: str) -> VerificationResult:
        await self._simulate_latency(PAN_DELAY)
        pan = (number or "").strip().upper()
        if not PAN_RE.match(pan):
            return VerificationResult(
                is_valid=False,
                error="Invalid PAN format. Please enter a valid PAN number (e.g., ABCDE1234F).",
            )
        if not validate_pan_format(pan):
            logger.info("PAN %s has unknown holder type %r", pan[:3] + "XX", pan[3])
            return VerificationResult(
                is_valid=False,
                error="PAN verification failed. Please check the PAN number and try again.",
            )
        info = extract_pan_info(pan)
        return VerificationResult(
            is_valid=True,
            normalized={"pan_number": pan, **info},
            name="John Doe",
            category=info["holder_type"],
        )


verifier = MockGovernmentVerifier()
