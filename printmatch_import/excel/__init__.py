"""Spreadsheet reading and report writing."""
