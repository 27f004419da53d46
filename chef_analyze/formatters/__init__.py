"""Report formatters - text, CSV and terminal summaries."""

from .common import FormattedResult
from .csv_report import cookbooks_report_csv, nodes_report_csv
from .table import cookbooks_report_summary, nodes_report_summary
from .txt import cookbooks_report_txt, nodes_report_txt

__all__ = [
    "FormattedResult",
    "cookbooks_report_csv",
    "cookbooks_report_summary",
    "cookbooks_report_txt",
    "nodes_report_csv",
    "nodes_report_summary",
    "nodes_report_txt",
]
