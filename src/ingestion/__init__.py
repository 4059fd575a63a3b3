"""
Package marker for the trip CSV loader in `src.ingestion`.
The read, parse, normalize, dedupe and load stages live in sibling modules; `pipeline` wires them together.
"""
