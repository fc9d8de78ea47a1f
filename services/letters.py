"""HR letter templates (offer, experience, relieving, NDA, ...) rendered to text and PDF.

Placeholders use the field ids HR fills in on the generator form, e.g.
``Employee_Name`` or ``Annual_CTC``. Salary fields also get a ``<field>_Words``
companion spelled out in the Indian numbering system.
"""

from __future__ import annotations

import io
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping, Optional

from dateutil import parser as dt_parser
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from storage.records import Employee
from utils import ApiError


_log = logging.getLogger("letters")

_SINGLE = ["", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine"]
_TEENS = ["Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen", "Seventeen", "Eighteen", "Nineteen"]
_TENS = ["", "Ten", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]

_SCALES = [(10_000_000, "Crore"), (100_000, "Lakh"), (1_000, "Thousand")]

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")

COMMON_FIELDS = ("Company_Name", "Company_Address", "Current_Date", "Employee_Name")
DATE_FIELDS = {
    "Current_Date",
    "Employee_Joining_Date",
    "Acceptance_Last_Date",
    "Start_Date",
    "End_Date",
    "Last_Working_Day",
    "Effective_Date",
}
AMOUNT_FIELDS = ("Annual_CTC", "Current_Salary", "New_Salary")

# Share of annual CTC per annexure row; the CTC row itself comes last.
SALARY_SPLIT = (
    ("Basic Salary", 0.5),
    ("HRA", 0.2),
    ("Special Allowance", 0.15),
    ("Transport Allowance", 0.05),
    ("Medical Allowance", 0.05),
    ("Gross Salary", 0.95),
    ("Employer PF Contribution", 0.05),
)
ANNEXURE_TITLE = "Annexure: Salary Structure"


def _below_thousand(n: int) -> str:
    out = ""
    if n >= 100:
        out = _SINGLE[n // 100] + " Hundred"
        n %= 100
        if n:
            out += " and "
    if 10 <= n < 20:
        out += _TEENS[n - 10]
    elif n >= 20:
        out += _TENS[n // 10]
        if n % 10:
            out += " " + _SINGLE[n % 10]
    elif n > 0:
        out += _SINGLE[n]
    return out


def number_to_words(value: Any) -> str:
    """Spell out a non-negative whole amount: 1250000 -> 'Twelve Lakh Fifty Thousand'."""
    try:
        num = int(float(str(value).replace(",", "").strip()))
    except (TypeError, ValueError, OverflowError):
        return ""
    if num == 0:
        return "Zero"
    if num < 0:
        return "Minus " + number_to_words(-num)

    parts = []
    for size, label in _SCALES:
        if num >= size:
            chunk, num = divmod(num, size)
            # Crore is the top unit, so its multiplier may itself exceed a thousand.
            words = number_to_words(chunk) if chunk >= 1000 else _below_thousand(chunk)
            parts.append(f"{words} {label}")
    if num > 0:
        parts.append(_below_thousand(num))
    return " ".join(parts)


@dataclass(frozen=True)
class SalaryLine:
    component: str
    monthly: int
    annual: int


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def salary_structure(annual_ctc: Any) -> list[SalaryLine]:
    """Monthly and annual breakup of a CTC, ending with the CTC row itself."""
    try:
        ctc = int(float(str(annual_ctc).replace(",", "").strip()))
    except (TypeError, ValueError, OverflowError):
        raise ApiError("BAD_REQUEST", f"Annual_CTC is not an amount: {annual_ctc!r}")
    if ctc < 0:
        raise ApiError("BAD_REQUEST", "Annual_CTC cannot be negative")

    rows = [SalaryLine(name, _round_half_up(ctc * share / 12), _round_half_up(ctc * share)) for name, share in SALARY_SPLIT]
    rows.append(SalaryLine("CTC", _round_half_up(ctc / 12), ctc))
    return rows


@dataclass(frozen=True)
class LetterTemplate:
    kind: str
    title: str
    fields: tuple[str, ...]
    body: tuple[str, ...]
    signature: tuple[str, ...]
    defaults: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Letter:
    kind: str
    title: str
    paragraphs: list[str]
    signature: list[str]
    annexure: list[SalaryLine] = field(default_factory=list)

    @property
    def text(self) -> str:
        blocks = [self.title, *self.paragraphs, "\n".join(self.signature)]
        if self.annexure:
            rows = [f"{r.component}: Rs. {r.monthly:,} monthly / Rs. {r.annual:,} annual" for r in self.annexure]
            blocks.append("\n".join([ANNEXURE_TITLE, *rows]))
        return "\n\n".join(blocks)


_HR_SIGNATURE = ("For {Company_Name}", "{HR_Name}", "Human Resources")
_HR_CLOSING = ("Sincerely,", "{HR_Name}", "Human Resources", "{Company_Name}")
_AGREEMENT_SIGNATURE = _HR_SIGNATURE + ("Accepted and Agreed by:", "{Employee_Name}", "Date: {Current_Date}")

TEMPLATES: dict[str, LetterTemplate] = {
    t.kind: t
    for t in [
        LetterTemplate(
            kind="offer_letter",
            title="Offer Letter",
            fields=COMMON_FIELDS + ("Job_Title", "Annual_CTC", "Manager_Name", "Employee_Joining_Date", "Acceptance_Last_Date", "HR_Name"),
            body=(
                "Dear {Employee_Name},",
                "We are pleased to offer you the position of {Job_Title} at {Company_Name}. Following our recent "
                "discussions, we are excited about the possibility of you joining our team.",
                "Your annual compensation will be Rs. {Annual_CTC}/- (Rupees {Annual_CTC_Words} Only) CTC. The detailed "
                "salary structure is provided in the attached annexure.",
                "Your tentative joining date will be {Employee_Joining_Date}. On your joining date, please report to "
                "{HR_Name} at our office located at {Company_Address}.",
                "This offer is valid until {Acceptance_Last_Date}. To confirm your acceptance, please sign and return "
                "a copy of this letter.",
            ),
            signature=_HR_CLOSING,
        ),
        LetterTemplate(
            kind="experience_letter",
            title="Experience Letter",
            fields=COMMON_FIELDS + ("Employee_Joining_Date", "End_Date", "Job_Title", "Department", "HR_Name"),
            body=(
                "TO WHOMSOEVER IT MAY CONCERN",
                "This is to certify that {Employee_Name} was employed with {Company_Name} from "
                "{Employee_Joining_Date} to {End_Date} as {Job_Title} in the {Department} department.",
                "During {Employee_Name}'s tenure with us, we found him/her to be hardworking, sincere, and dedicated. "
                "{Employee_Name} has executed all assigned responsibilities with utmost sincerity and has been an "
                "asset to the organization.",
                "We wish {Employee_Name} all the best for future endeavors.",
            ),
            signature=_HR_SIGNATURE,
        ),
        LetterTemplate(
            kind="internship_letter",
            title="Internship Letter",
            fields=COMMON_FIELDS + ("Start_Date", "End_Date", "Department", "Manager_Name", "HR_Name"),
            body=(
                "Dear {Employee_Name},",
                "We are pleased to offer you an internship opportunity at {Company_Name} in the {Department} "
                "department. This internship will commence on {Start_Date} and continue until {End_Date}.",
                "During your internship, you will report to {Manager_Name}, who will provide guidance and evaluate "
                "your performance. This internship will give you practical exposure to the work environment and "
                "help you develop professional skills.",
                "Please note that this is a learning opportunity and not an employment offer. Upon successful "
                "completion of the internship, you will receive an internship completion certificate from "
                "{Company_Name}.",
                "To confirm your acceptance, please sign and return a copy of this letter.",
            ),
            signature=_HR_CLOSING,
        ),
        LetterTemplate(
            kind="relieving_letter",
            title="Relieving Letter",
            fields=COMMON_FIELDS + ("Job_Title", "Department", "Employee_Joining_Date", "Last_Working_Day", "HR_Name"),
            body=(
                "TO WHOMSOEVER IT MAY CONCERN",
                "This is to certify that {Employee_Name} was employed with {Company_Name} as {Job_Title} in the "
                "{Department} department from {Employee_Joining_Date} to {Last_Working_Day}.",
                "{Employee_Name} has been relieved of all duties and responsibilities at {Company_Name} effective "
                "{Last_Working_Day}. All dues and obligations to {Employee_Name} have been settled.",
                "During {Employee_Name}'s tenure with us, we found him/her to be sincere and dedicated. We wish "
                "{Employee_Name} success in all future endeavors.",
            ),
            signature=_HR_SIGNATURE,
        ),
        LetterTemplate(
            kind="appraisal_letter",
            title="Appraisal Letter",
            fields=COMMON_FIELDS
            + ("Job_Title", "Department", "Current_Salary", "New_Salary", "Increment_Percentage", "Effective_Date", "Manager_Name", "HR_Name"),
            body=(
                "Dear {Employee_Name},",
                "We are pleased to inform you that following your performance review, your contribution to "
                "{Company_Name} has been recognized and appreciated.",
                "Effective {Effective_Date}, your annual compensation will be revised from Rs. {Current_Salary}/- to "
                "Rs. {New_Salary}/- per annum, representing an increase of {Increment_Percentage}%.",
                "Your dedication and commitment have been invaluable to the organization. We look forward to your "
                "continued excellence and contribution to the growth of {Company_Name}.",
            ),
            signature=("Sincerely,", "{Manager_Name}", "Manager", "{HR_Name}", "Human Resources"),
        ),
        LetterTemplate(
            kind="bonafide_letter",
            title="Bonafide Letter",
            fields=COMMON_FIELDS + ("Job_Title", "Employee_Joining_Date", "HR_Name"),
            body=(
                "TO WHOMSOEVER IT MAY CONCERN",
                "This is to certify that {Employee_Name} is a bonafide employee of {Company_Name} working as "
                "{Job_Title} since {Employee_Joining_Date}.",
                "This certificate is issued upon the request of {Employee_Name} for the purpose of general "
                "identification and verification.",
            ),
            signature=_HR_SIGNATURE,
        ),
        LetterTemplate(
            kind="address_proof",
            title="Address Proof Letter",
            fields=COMMON_FIELDS + ("Employee_Address", "Employee_Joining_Date", "Job_Title", "HR_Name"),
            body=(
                "TO WHOMSOEVER IT MAY CONCERN",
                "This is to certify that {Employee_Name} is a permanent employee of {Company_Name} working as "
                "{Job_Title} since {Employee_Joining_Date}.",
                "As per our records, {Employee_Name}'s current residential address is:",
                "{Employee_Address}",
                "This letter is issued upon the request of the employee for address verification purposes.",
            ),
            signature=_HR_SIGNATURE,
        ),
        LetterTemplate(
            kind="appointment_letter",
            title="Appointment Letter",
            fields=COMMON_FIELDS + ("Job_Title", "Department", "Annual_CTC", "Employee_Joining_Date", "Notice_Period", "HR_Name"),
            body=(
                "Dear {Employee_Name},",
                "We are pleased to confirm your appointment as {Job_Title} in the {Department} department at "
                "{Company_Name} effective {Employee_Joining_Date}.",
                "Your annual compensation will be Rs. {Annual_CTC}/- (Rupees {Annual_CTC_Words} Only) CTC. The "
                "detailed salary structure will be provided separately.",
                "Your employment will be governed by the company's policies, procedures, and terms of employment, "
                "which may be amended from time to time. The notice period applicable for your position is "
                "{Notice_Period}.",
                "Please sign and return a copy of this letter as acknowledgment of your acceptance.",
            ),
            signature=_HR_CLOSING,
            defaults={"Notice_Period": "30 days"},
        ),
        LetterTemplate(
            kind="nda",
            title="Non-Disclosure Agreement",
            fields=COMMON_FIELDS + ("HR_Name",),
            body=(
                'THIS NON-DISCLOSURE AGREEMENT ("Agreement") is made and entered into as of {Current_Date} by and between:',
                '{Company_Name}, having its registered office at {Company_Address} (hereinafter referred to as the "Company")',
                "AND",
                '{Employee_Name}, (hereinafter referred to as the "Recipient")',
                "1. Purpose",
                "The Recipient acknowledges that in the course of their employment with the Company, they will have "
                "access to and become acquainted with various trade secrets and confidential information owned by or "
                "related to the Company.",
                "2. Confidential Information",
                '"Confidential Information" includes but is not limited to technical, financial, business information, '
                "know-how, trade secrets, business plans, operations, client lists, project information, pricing, and "
                "any other information that is marked confidential or by its nature is confidential.",
                "3. Non-Disclosure Obligations",
                "The Recipient agrees not to use the Confidential Information for any purpose other than for the "
                "benefit of the Company. The Recipient will not disclose the Confidential Information to any third "
                "party without prior written consent from the Company.",
                "4. Return of Materials",
                "Upon termination of employment or upon request by the Company, the Recipient will promptly return all "
                "physical and electronic documents and materials containing Confidential Information.",
            ),
            signature=_AGREEMENT_SIGNATURE,
        ),
        LetterTemplate(
            kind="contract_agreement",
            title="Contract Agreement",
            fields=COMMON_FIELDS + ("Job_Title", "Start_Date", "End_Date", "Annual_CTC", "HR_Name"),
            body=(
                'THIS CONTRACT AGREEMENT ("Agreement") is made and entered into as of {Current_Date} by and between:',
                '{Company_Name}, having its registered office at {Company_Address} (hereinafter referred to as the "Company")',
                "AND",
                '{Employee_Name}, (hereinafter referred to as the "Contractor")',
                "1. Engagement and Services",
                "The Company hereby engages the Contractor to provide services as {Job_Title} for the period commencing "
                "on {Start_Date} and ending on {End_Date}, unless terminated earlier in accordance with this Agreement.",
                "2. Compensation",
                "For the services rendered, the Contractor shall be paid Rs. {Annual_CTC}/- for the term of this "
                "Agreement, payable in equal monthly installments.",
                "3. Independent Contractor Relationship",
                "The Contractor is engaged as an independent contractor and not as an employee of the Company. The "
                "Contractor is not eligible for any employee benefits and is responsible for all taxes related to the "
                "compensation received.",
                "4. Confidentiality",
                "The Contractor agrees to maintain the confidentiality of all proprietary information of the Company "
                "during and after the term of this Agreement.",
            ),
            signature=_AGREEMENT_SIGNATURE,
        ),
    ]
}


def format_letter_date(value: Any) -> str:
    """dd/mm/yyyy, the format printed on every letter."""
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    s = str(value or "").strip()
    if not s:
        return ""
    try:
        if _ISO_DATE_RE.match(s):
            parsed = dt_parser.isoparse(s)
        else:
            parsed = dt_parser.parse(s, dayfirst=True)
    except (ValueError, OverflowError):
        return s
    return parsed.strftime("%d/%m/%Y")


def letter_types() -> list[dict[str, str]]:
    return [{"id": t.kind, "name": t.title} for t in TEMPLATES.values()]


def required_fields(kind: str) -> tuple[str, ...]:
    return _template(kind).fields


def _template(kind: str) -> LetterTemplate:
    tpl = TEMPLATES.get(str(kind or "").strip().lower())
    if tpl is None:
        raise ApiError("BAD_REQUEST", f"Unknown letter type: {kind!r}")
    return tpl


def render_letter(kind: str, values: Mapping[str, Any], *, include_salary_structure: bool = False) -> Letter:
    tpl = _template(kind)
    merged: dict[str, str] = dict(tpl.defaults)
    for k, v in dict(values or {}).items():
        if v is None or str(v).strip() == "":
            continue
        merged[k] = format_letter_date(v) if k in DATE_FIELDS else str(v).strip()

    missing = [f for f in tpl.fields if not merged.get(f)]
    if missing:
        raise ApiError("BAD_REQUEST", f"Missing letter field(s): {', '.join(missing)}", details={"missing": missing})
    if include_salary_structure and "Annual_CTC" not in tpl.fields:
        raise ApiError("BAD_REQUEST", f"{tpl.title} has no salary structure")

    for f in AMOUNT_FIELDS:
        if f in merged:
            merged[f"{f}_Words"] = number_to_words(merged[f])

    letter = Letter(
        kind=tpl.kind,
        title=tpl.title,
        paragraphs=[p.format(**merged) for p in tpl.body],
        signature=[s.format(**merged) for s in tpl.signature],
        annexure=salary_structure(merged["Annual_CTC"]) if include_salary_structure else [],
    )
    _log.info("letter rendered kind=%s annexure=%s", tpl.kind, bool(letter.annexure))
    return letter


def letter_values_for_employee(employee: Employee, cfg: Optional[Any] = None, *, today: Optional[date] = None) -> dict[str, str]:
    """Prefill what the employee record already knows; HR supplies the rest."""
    out = {
        "Company_Name": str(getattr(cfg, "COMPANY_NAME", "") or ""),
        "Company_Address": str(getattr(cfg, "COMPANY_ADDRESS", "") or ""),
        "Current_Date": format_letter_date(today or date.today()),
        "Employee_Name": employee.full_name,
        "Job_Title": employee.position or "",
        "Department": employee.department or "",
        "Employee_Joining_Date": format_letter_date(employee.joining_date) if employee.joining_date else "",
        "Employee_Address": employee.current_address or employee.permanent_address or "",
    }
    return {k: v for k, v in out.items() if v}


def letter_pdf(letter: Letter) -> bytes:
    out = io.BytesIO()
    c = canvas.Canvas(out, pagesize=A4)
    width, height = A4
    margin = 60
    text_w = width - 2 * margin
    y = height - margin

    c.setFont("Helvetica-Bold", 16)
    c.drawCentredString(width / 2, y, letter.title)
    y -= 36

    def write_lines(lines: list[str], font: str, size: int, gap: int) -> None:
        nonlocal y
        c.setFont(font, size)
        for line in lines:
            if y < margin:
                c.showPage()
                c.setFont(font, size)
                y = height - margin
            c.drawString(margin, y, line)
            y -= size + 4
        y -= gap

    for para in letter.paragraphs:
        write_lines(simpleSplit(para, "Helvetica", 11, text_w), "Helvetica", 11, 8)

    y -= 16
    write_lines(letter.signature, "Helvetica", 11, 0)

    if letter.annexure:
        c.showPage()
        y = height - margin
        c.setFont("Helvetica-Bold", 13)
        c.drawString(margin, y, ANNEXURE_TITLE)
        y -= 28
        rows = [("Component", "Monthly", "Annual")] + [
            (r.component, f"Rs. {r.monthly:,}", f"Rs. {r.annual:,}") for r in letter.annexure
        ]
        for i, (name, monthly, annual) in enumerate(rows):
            bold = i == 0 or name in {"Gross Salary", "CTC"}
            c.setFont("Helvetica-Bold" if bold else "Helvetica", 11)
            c.drawString(margin, y, name)
            c.drawRightString(width - margin - 140, y, monthly)
            c.drawRightString(width - margin, y, annual)
            y -= 18

    c.showPage()
    c.save()
    return out.getvalue()
