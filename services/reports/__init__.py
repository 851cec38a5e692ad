"""Report synthesis: one-page PDF summary of a saved scenario.

- formatting.py: currency, percentage, count and duration display rules
- pdf.py: fixed layout contract, narrative summary and PDF rendering
"""
