"""MIME structure handling: BODYSTRUCTURE conversion and PDF part lookup."""

from pdf_mailbox_scanner.mime.bodystructure import parse_bodystructure
from pdf_mailbox_scanner.mime.locator import locate
from pdf_mailbox_scanner.mime.walker import find_node, is_valid_part_path, walk

__all__ = ["find_node", "is_valid_part_path", "locate", "parse_bodystructure", "walk"]
