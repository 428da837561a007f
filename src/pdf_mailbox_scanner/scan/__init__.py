"""Full and incremental mailbox scans."""

from pdf_mailbox_scanner.scan.orchestrator import ScanOrchestrator
from pdf_mailbox_scanner.scan.state import ScanState

__all__ = ["ScanOrchestrator", "ScanState"]
