"""
Weekly KPI scorecard.

Groups timestamped records from external systems into Monday-keyed UTC weeks
and renders them as:
  - fixed-width text tables (completed weeks, current week, totals)
  - ASCII histograms (26-week trend)
  - JSON documents and Markdown tables

Week math and rendering are pure; every report is reproducible from the
fetched records and a single "now" reading.
"""

__version__ = "0.1.0"
