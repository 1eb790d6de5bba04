"""Parsing module for the descriptor DSL."""

from typed_host.parsing.desc_parser import DescParser, parse_desc

__all__ = [
    "DescParser",
    "parse_desc",
]
