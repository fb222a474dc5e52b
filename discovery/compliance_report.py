"""
Discovery Compliance Report
Export a case's discovery requests and their supporting documents to Excel

Creates a workbook with:
- Summary sheet (request counts by type and status, average completion)
- Requests sheet (one row per request with its accepted documents)
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from sqlalchemy.ext.asyncio import AsyncSession

from database.repositories import (
    CaseDocumentRepository,
    DiscoveryRequestRepository,
    DocumentRequestMappingRepository,
)

from .models import DiscoveryStats, MappingStatus, RequestStatus, RequestType
from .utils import round_half_up

logger = logging.getLogger(__name__)


REPORT_COLUMNS = [
    ("type", "Type", 14),
    ("number", "Number", 10),
    ("text", "Request Text", 70),
    ("category_hint", "Category", 14),
    ("status", "Status", 12),
    ("completion_percentage", "Completion %", 13),
    ("accepted_documents", "Accepted Documents", 50),
    ("pending_suggestions", "Pending Suggestions", 12),
]


def stats_from_requests(requests: Iterable[Any]) -> DiscoveryStats:
    """Same figures as get_discovery_stats, computed from loaded requests."""
    requests = list(requests)
    stats = DiscoveryStats(total=len(requests))
    completion_total = 0
    for request in requests:
        if request.type == RequestType.RFP.value:
            stats.rfp_count += 1
        elif request.type == RequestType.INTERROGATORY.value:
            stats.interrogatory_count += 1

        if request.status == RequestStatus.COMPLETE.value:
            stats.complete += 1
        elif request.status == RequestStatus.PARTIAL.value:
            stats.partial += 1
        else:
            stats.incomplete += 1
        completion_total += request.completion_percentage or 0

    if requests:
        stats.average_completion = round_half_up(completion_total / len(requests))
    return stats


def build_report_rows(
    requests: Iterable[Any],
    mappings_by_request: Dict[str, List[Any]],
    documents: Dict[str, Any],
) -> List[Dict[str, Any]]:
    """
    One row per request, in the order given.

    Accepted documents are listed by file name (sorted); suggestions still
    waiting for review are only counted. Mappings whose document is not in
    ``documents`` are listed by ID.
    """
    rows = []
    for request in requests:
        accepted = []
        pending = 0
        for mapping in mappings_by_request.get(request.id, []):
            if mapping.status == MappingStatus.ACCEPTED.value:
                document = documents.get(mapping.document_id)
                accepted.append(document.file_name if document is not None else mapping.document_id)
            elif mapping.status == MappingStatus.SUGGESTED.value:
                pending += 1

        rows.append({
            "type": request.type,
            "number": request.number,
            "text": request.text,
            "category_hint": request.category_hint or "",
            "status": request.status,
            "completion_percentage": request.completion_percentage or 0,
            "accepted_documents": "; ".join(sorted(accepted)),
            "pending_suggestions": pending,
        })
    return rows


class ComplianceReportExporter:
    """
    Export discovery compliance to an Excel workbook
    """

    # Color scheme
    COLORS = {
        "header": "1F4E79",           # Dark blue
        "complete": "D9EAD3",         # Light green
        "partial": "FFF2CC",          # Light yellow
        "incomplete": "F4CCCC",       # Light red
    }

    def export(
        self,
        requests: Iterable[Any],
        mappings_by_request: Dict[str, List[Any]],
        documents: Dict[str, Any],
        output_path: str,
        case_name: str = "",
    ) -> str:
        """
        Write the report workbook.

        Args:
            requests: DiscoveryRequest rows, in report order
            mappings_by_request: request ID -> its mappings
            documents: document ID -> Document
            output_path: Path for output .xlsx file
            case_name: Shown in the summary title

        Returns:
            Path to created file
        """
        requests = list(requests)
        rows = build_report_rows(requests, mappings_by_request, documents)
        return self.write(rows, stats_from_requests(requests), output_path, case_name)

    def write(
        self,
        rows: List[Dict[str, Any]],
        stats: DiscoveryStats,
        output_path: str,
        case_name: str = "",
    ) -> str:
        """Write prepared report rows and stats to ``output_path``."""
        wb = Workbook()
        self._create_summary_sheet(wb, stats, case_name)
        self._create_requests_sheet(wb, rows)
        wb.save(output_path)

        logger.info("Wrote compliance report with %d requests to %s", len(rows), output_path)
        return output_path

    def _fill(self, key: str) -> PatternFill:
        return PatternFill(start_color=self.COLORS[key], end_color=self.COLORS[key], fill_type="solid")

    def _create_summary_sheet(self, wb: Workbook, stats: DiscoveryStats, case_name: str):
        """Create summary dashboard sheet"""
        ws = wb.active
        ws.title = "Summary"

        ws.merge_cells("A1:D1")
        ws["A1"] = "Discovery Compliance Report"
        ws["A1"].font = Font(bold=True, size=18)

        ws["A2"] = f"Case: {case_name}" if case_name else "Case: [Not Specified]"
        ws["A3"] = f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}"

        row = 5
        ws[f"A{row}"] = "REQUEST STATISTICS"
        ws[f"A{row}"].font = Font(bold=True, size=14)

        figures = [
            ("Total Requests", stats.total, None),
            ("Requests for Production", stats.rfp_count, None),
            ("Interrogatories", stats.interrogatory_count, None),
            ("Complete", stats.complete, "complete"),
            ("Partial", stats.partial, "partial"),
            ("Incomplete", stats.incomplete, "incomplete"),
            ("Average Completion", f"{stats.average_completion}%", None),
        ]

        row += 1
        for label, value, color in figures:
            ws[f"A{row}"] = label
            ws[f"B{row}"] = value
            ws[f"A{row}"].font = Font(bold=True)
            if color:
                ws[f"A{row}"].fill = self._fill(color)
            row += 1

        ws.column_dimensions["A"].width = 30
        ws.column_dimensions["B"].width = 15

    def _create_requests_sheet(self, wb: Workbook, rows: List[Dict[str, Any]]):
        """Create one-row-per-request sheet"""
        ws = wb.create_sheet("Requests")

        header_font = Font(bold=True, color="FFFFFF")
        thin_border = Border(
            left=Side(style="thin"),
            right=Side(style="thin"),
            top=Side(style="thin"),
            bottom=Side(style="thin"),
        )

        for col, (_, title, width) in enumerate(REPORT_COLUMNS, 1):
            cell = ws.cell(row=1, column=col, value=title)
            cell.fill = self._fill("header")
            cell.font = header_font
            cell.alignment = Alignment(horizontal="center", wrap_text=True)
            cell.border = thin_border
            ws.column_dimensions[get_column_letter(col)].width = width

        ws.freeze_panes = "A2"

        status_col = [key for key, _, _ in REPORT_COLUMNS].index("status") + 1
        for row_idx, data in enumerate(rows, 2):
            for col, (key, _, _) in enumerate(REPORT_COLUMNS, 1):
                cell = ws.cell(row=row_idx, column=col, value=data[key])
                cell.alignment = Alignment(vertical="top", wrap_text=True)
                cell.border = thin_border

            status = data["status"]
            if status in self.COLORS:
                ws.cell(row=row_idx, column=status_col).fill = self._fill(status)


async def export_case_compliance_report(
    session: AsyncSession,
    case_id: str,
    user_id: str,
    output_path: str,
    case_name: str = "",
    exporter: Optional[ComplianceReportExporter] = None,
) -> str:
    """Load a case's requests, mappings and documents and write the report."""
    requests = await DiscoveryRequestRepository(session, user_id).list_by_case(case_id)
    mappings = await DocumentRequestMappingRepository(session, user_id).list_by_case(case_id)

    mappings_by_request: Dict[str, List[Any]] = {}
    for mapping in mappings:
        mappings_by_request.setdefault(mapping.request_id, []).append(mapping)

    document_ids = {mapping.document_id for mapping in mappings}
    documents = await CaseDocumentRepository(session, user_id).list_by_ids(document_ids)

    rows = build_report_rows(requests, mappings_by_request, {document.id: document for document in documents})
    stats = stats_from_requests(requests)

    # The workbook is written off the event loop
    exporter = exporter or ComplianceReportExporter()
    return await asyncio.to_thread(exporter.write, rows, stats, output_path, case_name or case_id)
