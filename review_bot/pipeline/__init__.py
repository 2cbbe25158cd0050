"""Pipeline stages for the review bot."""

from .chunker import chunk_file_diff, select_files, is_simple_change
from .prompts import PromptBuilder, render
from .response_parser import parse_review_response, split_sections
from .reconciler import CommentReconciler

__all__ = [
    "chunk_file_diff",
    "select_files",
    "is_simple_change",
    "PromptBuilder",
    "render",
    "parse_review_response",
    "split_sections",
    "CommentReconciler",
]
