"""Finnish bank virtual barcode ("virtuaaliviivakoodi").

Layout, 54 digits in total:

    version 4: 4 | IBAN digits (16) | euros (6) | cents (2) | 000 | reference (20) | YYMMDD
    version 5: 5 | IBAN digits (16) | euros (6) | cents (2) | RF check (2) | reference (21) | YYMMDD

A missing due date is encoded as 000000, a missing version 4 reference as zeros.
"""

import datetime
import re
from dataclasses import dataclass
from typing import Optional

from .errors import BarcodeBuildError

MAX_AMOUNT = 99_999_999  # 999 999,99 EUR in cents

_IBAN_RE = re.compile(r'^FI\d{16}$')
_NATIONAL_REF_RE = re.compile(r'^\d{4,20}$')
_RF_REF_RE = re.compile(r'^RF(\d{2})(\d{1,21})$')


def _compact(value: str) -> str:
    return re.sub(r'\s+', '', value or '').upper()


def _mod97(value: str) -> int:
    digits = ''.join(str(int(ch, 36)) for ch in value)
    return int(digits) % 97


def iban_is_valid(iban: str) -> bool:
    """True for a well formed Finnish IBAN with a correct checksum."""
    compact = _compact(iban)
    if not _IBAN_RE.match(compact):
        return False
    return _mod97(compact[4:] + compact[:4]) == 1


def national_reference_check_digit(base: str) -> int:
    weights = (7, 3, 1)
    total = sum(int(d) * weights[i % 3] for i, d in enumerate(reversed(base)))
    return (10 - total % 10) % 10


def national_reference_is_valid(reference: str) -> bool:
    compact = _compact(reference)
    if not _NATIONAL_REF_RE.match(compact):
        return False
    return national_reference_check_digit(compact[:-1]) == int(compact[-1])


def rf_reference_is_valid(reference: str) -> bool:
    compact = _compact(reference)
    if not _RF_REF_RE.match(compact):
        return False
    return _mod97(compact[4:] + compact[:4]) == 1


@dataclass(frozen=True)
class Barcode:
    version: int
    account: str
    amount: int
    reference: str
    due_date: Optional[datetime.date] = None

    def __str__(self) -> str:
        euros, cents = divmod(self.amount, 100)
        due = self.due_date.strftime('%y%m%d') if self.due_date else '000000'
        if self.version == 4:
            reference = '000' + self.reference.rjust(20, '0')
        else:
            match = _RF_REF_RE.match(self.reference)
            if match is None:
                raise BarcodeBuildError(f"invalid RF reference: {self.reference!r}")
            reference = match.group(1) + match.group(2).rjust(21, '0')
        return f"{self.version}{self.account}{euros:06d}{cents:02d}{reference}{due}"


class BarcodeBuilder:
    """Fluent builder; ``build`` validates every field and raises BarcodeBuildError."""

    def __init__(self, version: int):
        if version not in (4, 5):
            raise BarcodeBuildError(f"unsupported barcode version {version}")
        self._version = version
        self._account: Optional[str] = None
        self._amount: Optional[int] = None
        self._reference: Optional[str] = None
        self._due_date: Optional[datetime.date] = None

    @classmethod
    def v4(cls) -> 'BarcodeBuilder':
        return cls(4)

    @classmethod
    def v5(cls) -> 'BarcodeBuilder':
        return cls(5)

    def account_number(self, iban: str) -> 'BarcodeBuilder':
        self._account = iban
        return self

    def sum(self, amount: int) -> 'BarcodeBuilder':
        self._amount = amount
        return self

    def reference(self, reference: str) -> 'BarcodeBuilder':
        self._reference = reference
        return self

    def due_date(self, due: datetime.date) -> 'BarcodeBuilder':
        self._due_date = due
        return self

    def build(self) -> Barcode:
        if self._account is None:
            raise BarcodeBuildError('account number missing')
        if not iban_is_valid(self._account):
            raise BarcodeBuildError(f"invalid Finnish IBAN: {self._account!r}")
        amount = 0 if self._amount is None else self._amount
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise BarcodeBuildError(f"amount must be integer cents, got {amount!r}")
        if amount < 0 or amount > MAX_AMOUNT:
            raise BarcodeBuildError(f"amount out of range: {amount}")

        reference = _compact(self._reference) if self._reference else ''
        if self._version == 4:
            if reference and not national_reference_is_valid(reference):
                raise BarcodeBuildError(f"invalid reference number: {self._reference!r}")
        else:
            if not reference:
                raise BarcodeBuildError('version 5 barcode requires an RF reference')
            if not rf_reference_is_valid(reference):
                raise BarcodeBuildError(f"invalid RF reference: {self._reference!r}")

        return Barcode(
            version=self._version,
            account=_compact(self._account)[2:],
            amount=amount,
            reference=reference,
            due_date=self._due_date,
        )


def build_barcode(iban: str, total: int) -> str:
    """Version 4 barcode for an account and a total in cents."""
    return str(BarcodeBuilder.v4().account_number(iban).sum(total).build())
