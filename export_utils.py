import io
from datetime import date, datetime
from typing import Any, Callable, Iterable, Optional, Sequence

from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from openpyxl.utils import get_column_letter

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
SHEET_TITLE = "Loans"


def format_dt(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime("%d/%m/%Y %H:%M")


LOAN_COLUMNS: Sequence[tuple[str, int, Callable[[Any], Any]]] = [
    ("Loan Date", 18, lambda l: format_dt(l.loan_date)),
    ("Borrower Name", 20, lambda l: l.borrower_name),
    ("Phone", 15, lambda l: l.borrower_phone or ""),
    ("Third Party", 12, lambda l: "Yes" if l.is_third_party else "No"),
    ("Organization", 25, lambda l: l.third_party_name or ""),
    ("Organization Address", 30, lambda l: l.third_party_address or ""),
    ("Asset", 25, lambda l: l.asset.name),
    ("Asset Code", 15, lambda l: l.asset.code),
    ("Category", 15, lambda l: l.asset.category.name),
    ("Office", 20, lambda l: l.asset.office.name),
    ("Recorded By", 20, lambda l: l.user.full_name),
    ("Status", 12, lambda l: l.status.value),
    ("Target Return", 18, lambda l: format_dt(l.return_date)),
    ("Actual Return", 18, lambda l: format_dt(l.actual_return_date)),
    ("Purpose", 25, lambda l: l.purpose or ""),
    ("Notes", 25, lambda l: l.notes or ""),
]


def loans_to_workbook(loans: Iterable[Any], *, columns=LOAN_COLUMNS) -> Workbook:
    """One header row plus one row per loan; works on ORM rows or schemas."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = SHEET_TITLE

    sheet.append([title for title, _, _ in columns])
    for idx, (_, width, _) in enumerate(columns, start=1):
        sheet.column_dimensions[get_column_letter(idx)].width = width

    for loan in loans:
        sheet.append([getter(loan) for _, _, getter in columns])
    return workbook


def loans_to_xlsx_response(loans: Iterable[Any], *, today: Optional[date] = None) -> StreamingResponse:
    workbook = loans_to_workbook(loans)
    output = io.BytesIO()
    workbook.save(output)
    output.seek(0)

    stamp = (today or date.today()).isoformat()
    headers = {"Content-Disposition": f'attachment; filename="loans_{stamp}.xlsx"'}
    return StreamingResponse(output, media_type=XLSX_MEDIA_TYPE, headers=headers)
