"""Invoice data model handed to the document pipeline.

Amounts are integer minor currency units (cents) throughout.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple


def _minor_units(value: Any, name: str) -> int:
    # bool is an int subclass but never a price
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer amount of minor units, got {value!r}")
    return value


@dataclass(frozen=True)
class Address:
    street: str
    city: str
    zip: str

    def to_data(self) -> Dict[str, str]:
        return {'street': self.street, 'city': self.city, 'zip': self.zip}


@dataclass(frozen=True)
class InvoiceRow:
    product: str
    unit_price: int
    quantity: Optional[int] = None
    unit: Optional[str] = None

    @property
    def total(self) -> int:
        return self.unit_price * (1 if self.quantity is None else self.quantity)

    def to_data(self) -> Dict[str, Any]:
        return {
            'product': self.product,
            'unit_price': self.unit_price,
            'quantity': 1 if self.quantity is None else self.quantity,
            'unit': self.unit,
            'total': self.total,
        }


@dataclass(frozen=True)
class InvoiceAttachment:
    filename: str
    data: bytes = field(repr=False)

    @property
    def is_pdf(self) -> bool:
        return self.filename.lower().endswith('.pdf')


@dataclass(frozen=True)
class AttachmentInfo:
    """Metadata of an attachment that was inlined into the template."""

    filename: str
    path: str
    size: int
    sha256: str
    description: Optional[str] = None

    @classmethod
    def for_attachment(
        cls, attachment: InvoiceAttachment, path: str, description: Optional[str] = None
    ) -> 'AttachmentInfo':
        return cls(
            filename=attachment.filename,
            path=path,
            size=len(attachment.data),
            sha256=hashlib.sha256(attachment.data).hexdigest(),
            description=description,
        )

    def to_data(self) -> Dict[str, Any]:
        # no content bytes; the template reads the file from `path`
        return {'filename': self.filename, 'description': self.description, 'path': self.path}


def invoice_total(rows: Iterable[InvoiceRow]) -> int:
    """Sum of row totals in minor units, integer arithmetic only."""
    total = 0
    for row in rows:
        total += row.total
    return total


@dataclass(frozen=True)
class Invoice:
    recipient_name: str
    recipient_email: str
    address: Address
    bank_account_number: str
    subject: str
    description: str
    phone_number: str
    rows: Tuple[InvoiceRow, ...]
    attachment_descriptions: Tuple[str, ...] = ()
    attachments: Tuple[InvoiceAttachment, ...] = ()

    @property
    def total(self) -> int:
        return invoice_total(self.rows)

    def description_for(self, index: int) -> Optional[str]:
        if 0 <= index < len(self.attachment_descriptions):
            return self.attachment_descriptions[index]
        return None

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        attachments: Sequence[InvoiceAttachment] = (),
    ) -> 'Invoice':
        """Build an invoice from the JSON shape accepted by the invoice API.

        Raises KeyError for missing fields and ValueError for non-integer prices.
        """
        address = data['address']
        rows = []
        for i, row in enumerate(data['rows']):
            quantity = row.get('quantity')
            rows.append(
                InvoiceRow(
                    product=row['product'],
                    unit_price=_minor_units(row['unit_price'], f"rows[{i}].unit_price"),
                    quantity=None
                    if quantity is None
                    else _minor_units(quantity, f"rows[{i}].quantity"),
                    unit=row.get('unit'),
                )
            )
        return cls(
            recipient_name=data['recipient_name'],
            recipient_email=data['recipient_email'],
            address=Address(
                street=address['street'], city=address['city'], zip=address['zip']
            ),
            bank_account_number=data['bank_account_number'],
            subject=data.get('subject', ''),
            description=data.get('description', ''),
            phone_number=data.get('phone_number', ''),
            rows=tuple(rows),
            attachment_descriptions=tuple(data.get('attachment_descriptions') or ()),
            attachments=tuple(attachments),
        )

    def to_data(
        self, inlined: Sequence[AttachmentInfo] = (), total: Optional[int] = None
    ) -> Dict[str, Any]:
        """Serialize for the template scope.

        ``total`` lets the caller pass the total it already computed so the
        document and the barcode see the same number.
        """
        attachments: List[Dict[str, Any]] = [info.to_data() for info in inlined]
        return {
            'recipient_name': self.recipient_name,
            'recipient_email': self.recipient_email,
            'address': self.address.to_data(),
            'bank_account_number': self.bank_account_number,
            'subject': self.subject,
            'description': self.description,
            'phone_number': self.phone_number,
            'attachment_descriptions': list(self.attachment_descriptions),
            'rows': [row.to_data() for row in self.rows],
            'attachments': attachments,
            'total': self.total if total is None else total,
        }
