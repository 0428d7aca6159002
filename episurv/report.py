from __future__ import annotations

"""
EpiSurv report generator
------------------------
This module writes a DOCX report for one computed `Report`:

- the displayed cross-tab (locations x age interval x sex) with row, column
  and grand totals,
- a donut chart of cases by location,
- a stacked bar chart of cases by age interval and sex.

Report dependencies (python-docx, matplotlib) are imported lazily, so the
engine and CLI work without them until a report is requested.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple
import os
import tempfile

from .engine import Report
from .models import SEXES
from .periods import period_label
from .totals import interval_distribution, location_shares


@dataclass
class ReportConfig:
    """High-level knobs to control how the report is written."""
    title: str = "Epidemiological Surveillance Report"
    subtitle: str = "Monthly case counts by location, sex and age"
    dataset_name: str = "Monthly disease case reports"

    # Optional: list of CLI commands used to create the current view
    command_log: Optional[List[str]] = None


# -----------------------------
# Main entry point used by CLI
# -----------------------------

def generate_docx_report(
    report: Report,
    out_path: str,
    *,
    config: Optional[ReportConfig] = None,
) -> str:
    """
    Generate a DOCX report + charts for one computed report.

    Raises ValueError when the report has nothing to show: an empty matrix
    must be reported as "no data", never as a table of zeros.
    """
    config = config or ReportConfig()

    # Lazy imports: only required when "report" is used.
    try:
        from docx import Document
        from docx.shared import Pt, Inches
        from docx.enum.text import WD_ALIGN_PARAGRAPH
    except ImportError as e:
        raise ImportError(
            "Missing dependency: python-docx.\n"
            "Install it with: python -m pip install python-docx"
        ) from e

    try:
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
        import numpy as np
    except ImportError as e:
        raise ImportError(
            "Missing dependency: matplotlib (and numpy).\n"
            "Install with: python -m pip install matplotlib numpy"
        ) from e

    if report.matrix.is_empty:
        raise ValueError("No data to report on (adjust the location/age filters).")

    matrix, totals, registry = report.matrix, report.totals, report.registry

    # -----------------------------
    # 1) Build DOCX report
    # -----------------------------
    doc = Document()

    style = doc.styles["Normal"]
    style.font.name = "Calibri"
    style.font.size = Pt(10)

    def _center_title(text: str, size: int, bold: bool = False, italic: bool = False) -> None:
        p = doc.add_paragraph()
        r = p.add_run(text)
        r.bold = bold
        r.italic = italic
        r.font.size = Pt(size)
        p.alignment = WD_ALIGN_PARAGRAPH.CENTER

    def _kv(key: str, value: str) -> None:
        p = doc.add_paragraph()
        r = p.add_run(f"{key}: ")
        r.bold = True
        p.add_run(value)

    _center_title(config.title, 20, bold=True)
    _center_title(config.subtitle, 12, italic=True)
    _center_title(report.title, 12)

    doc.add_paragraph("")
    _kv("Dataset", config.dataset_name)
    _kv("Report type", report.report_type.value)
    _kv("Period", period_label(report.period_value))
    _kv("Months aggregated", ", ".join(report.months))
    _kv("Locations displayed", str(len(matrix.locations)))
    _kv("Report Total", f"{totals.grand.total} Cases")

    # Cross-tab
    doc.add_paragraph("")
    doc.add_heading("Cases by location, age interval and sex", level=1)
    n_cols = 1 + 2 * len(matrix.intervals) + 3
    t = doc.add_table(rows=2, cols=n_cols)
    t.style = "Table Grid"
    h1, h2 = t.rows[0].cells, t.rows[1].cells
    h1[0].text = "EPSP / COMMUNE"
    for j, interval in enumerate(matrix.intervals):
        h1[1 + 2 * j].text = interval.label
        for k, s in enumerate(SEXES):
            h2[1 + 2 * j + k].text = s.value
    h1[n_cols - 3].text = "TOTAL"
    h2[n_cols - 3].text = "M"
    h2[n_cols - 2].text = "F"
    h1[n_cols - 1].text = "TOTAL GÉNÉRAL"

    for loc in matrix.locations:
        cells = t.add_row().cells
        cells[0].text = registry.display_name(loc) or loc
        for j, (_, m, f) in enumerate(matrix.row(loc)):
            cells[1 + 2 * j].text = str(m)
            cells[2 + 2 * j].text = str(f)
        row_total = totals.per_location[loc]
        cells[n_cols - 3].text = str(row_total.M)
        cells[n_cols - 2].text = str(row_total.F)
        cells[n_cols - 1].text = str(row_total.total)

    cells = t.add_row().cells
    cells[0].text = "TOTAL"
    for j, interval in enumerate(matrix.intervals):
        col = totals.per_column[interval]
        cells[1 + 2 * j].text = str(col.M)
        cells[2 + 2 * j].text = str(col.F)
    cells[n_cols - 3].text = str(totals.grand.M)
    cells[n_cols - 2].text = str(totals.grand.F)
    cells[n_cols - 1].text = str(totals.grand.total)

    # Visualizations: chart files only live until they are embedded
    doc.add_paragraph("")
    doc.add_heading("Visualizations", level=1)
    with tempfile.TemporaryDirectory(prefix="episurv_report_") as tmpdir:
        chart_paths = _render_charts(tmpdir, matrix, totals, registry, plt, np)
        if not chart_paths:
            doc.add_paragraph("No data available for the selected period or disease.")
        for title, path in chart_paths:
            doc.add_paragraph(title)
            doc.add_picture(path, width=Inches(6.0))
            doc.add_paragraph("")

    # -----------------------------
    # Reproducibility footer
    # -----------------------------
    doc.add_paragraph("")
    doc.add_heading("Reproducibility footer", level=1)

    from . import __version__ as episurv_version
    from datetime import datetime as _dt
    generated_at = _dt.now().isoformat(timespec="seconds")

    doc.add_paragraph(f"EpiSurv version: {episurv_version}")
    doc.add_paragraph(f"Report generated at: {generated_at}")
    doc.add_paragraph(f"Diseases: {', '.join(report.diseases)}")

    if config.command_log:
        doc.add_paragraph("Commands used (log):")
        for line in config.command_log:
            doc.add_paragraph(line, style="List Bullet")

    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    doc.save(out_path)
    return out_path


def _render_charts(tmpdir: str, matrix, totals, registry, plt, np) -> List[Tuple[str, str]]:
    """Draw the donut and stacked bar charts as PNGs under `tmpdir`."""
    # Each chart is: (title, file_path)
    chart_paths: List[Tuple[str, str]] = []

    def _save(filename: str) -> str:
        path = os.path.join(tmpdir, filename)
        plt.tight_layout()
        plt.savefig(path, dpi=200)
        plt.close()
        return path

    shares = location_shares(matrix, totals, registry)
    if shares:
        plt.figure(figsize=(6, 6))
        plt.pie(
            [cases for _, cases, _ in shares],
            labels=[f"{label} ({share:.1%})" for label, _, share in shares],
            wedgeprops={"width": 0.5, "edgecolor": "white"},
            startangle=90,
            counterclock=False,
        )
        plt.text(0, 0, str(totals.grand.total), ha="center", va="center",
                 fontsize=20, fontweight="bold")
        plt.title("Distribution by Location")
        chart_paths.append(("Distribution by Location", _save("donut_locations.png")))

    dist = interval_distribution(totals)
    if any(m or f for _, m, f in dist):
        x = np.arange(len(dist))
        males = np.array([m for _, m, _ in dist])
        females = np.array([f for _, _, f in dist])
        plt.figure(figsize=(8, 5))
        plt.bar(x, males, color="#3b82f6", label="Male")
        plt.bar(x, females, bottom=males, color="#f472b6", label="Female")
        plt.xticks(x, [label for label, _, _ in dist], rotation=45, ha="right")
        plt.ylabel("Total Cases")
        plt.legend()
        plt.title("Age and Sex Distribution")
        chart_paths.append(("Age and Sex Distribution", _save("stacked_age_sex.png")))
    return chart_paths
