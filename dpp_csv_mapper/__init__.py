"""Core logic for the DPP CSV Mapper.

The Gradio UI lives in `app.py`. This package contains the pieces that:
- flatten resolved JSON Schemas into a field catalog
- match CSV headers to catalog fields and seed a mapping
- track array indices and flag conflicting targets
- build nested records from mapped CSV rows
"""
