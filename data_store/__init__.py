"""Persistence sinks for CO2 sensor capture events."""

from data_store.postgres import PostgresSink
from data_store.schemas import TABLES, event_to_rows
from data_store.store import MemorySink

__all__ = ["TABLES", "event_to_rows", "PostgresSink", "MemorySink"]
