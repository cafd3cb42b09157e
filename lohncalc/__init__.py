"""Lohn Calc - German statutory payroll computation."""

__version__ = "0.4.0"
